"""OAuth helpers for Gmail accounts.

`TokenRefresher` wraps every Gmail request: when the stored access token is
rejected with a 401 it exchanges the refresh token once, persists the new
access token and retries the request once.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, Protocol

import httpx
import structlog

from inbox_organizer.config import Settings
from inbox_organizer.exceptions import (
    AuthenticationError,
    ConfigurationError,
    StoreError,
    TokenRefreshError,
)
from inbox_organizer.models import MailAccount
from inbox_organizer.store import AccountStore
from inbox_organizer.utils import mask_token

logger = structlog.get_logger()

AuthorizedRequest = Callable[[str], Awaitable[httpx.Response]]


class TokenGrant(Protocol):
    """Exchanges a refresh token for a fresh access token."""

    async def refresh(self, refresh_token: str) -> str: ...


class HttpTokenGrant:
    """Refresh-token grant against Google's OAuth token endpoint."""

    def __init__(self, http: httpx.AsyncClient, settings: Settings | None = None) -> None:
        from inbox_organizer.config import get_settings

        self.settings = settings or get_settings()
        self._http = http

    async def refresh(self, refresh_token: str) -> str:
        """Exchange `refresh_token` for an access token.

        Raises:
            TokenRefreshError: If the endpoint rejects the grant or omits access_token.
        """

        try:
            response = await self._http.post(
                self.settings.google_token_url,
                data={
                    "client_id": self.settings.google_client_id,
                    "client_secret": self.settings.google_client_secret,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
                timeout=self.settings.http_timeout_seconds,
            )
        except httpx.HTTPError as exc:
            raise TokenRefreshError(f"Token endpoint unreachable: {exc}") from exc

        if not response.is_success:
            raise TokenRefreshError(
                f"Token endpoint returned {response.status_code}: {response.text[:200]}"
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise TokenRefreshError("Token endpoint returned non-JSON body") from exc

        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not isinstance(access_token, str) or not access_token:
            raise TokenRefreshError("Token endpoint response has no access_token")
        return access_token


class TokenRefresher:
    """Runs Gmail requests with a valid access token for an account."""

    def __init__(self, account_store: AccountStore, grant: TokenGrant) -> None:
        self._accounts = account_store
        self._grant = grant

    async def with_valid_token(
        self,
        account: MailAccount,
        request: AuthorizedRequest,
    ) -> httpx.Response:
        """Run `request` with the account's token, refreshing once on 401.

        Args:
            account: Account whose credentials authorize the request. Its
                access_token is updated in place after a successful refresh.
            request: Coroutine factory taking an access token.

        Returns:
            The retried response after a successful refresh, otherwise the
            first response (including an unrefreshable 401).
        """

        response = await request(account.access_token)
        if response.status_code != 401 or not account.refresh_token:
            return response

        logger.warning("access_token_expired", account_id=account.id, email=account.email)

        try:
            new_token = await self._grant.refresh(account.refresh_token)
        except TokenRefreshError as exc:
            logger.error("token_refresh_failed", account_id=account.id, error=str(exc))
            return response

        account.access_token = new_token
        try:
            self._accounts.update_account(account.id, {"access_token": new_token})
        except StoreError as exc:
            logger.error("token_persist_failed", account_id=account.id, error=str(exc))

        logger.info(
            "access_token_refreshed",
            account_id=account.id,
            token=mask_token(new_token),
        )
        return await request(new_token)


async def run_consent_flow(credentials_path: Path, scope: str) -> Any:
    """Run the installed-app OAuth consent flow and return the credentials.

    Raises:
        ConfigurationError: If the client secrets file is missing.
        AuthenticationError: If the flow fails.
    """

    if not credentials_path.exists():
        raise ConfigurationError(
            f"OAuth client secrets file not found: {credentials_path}. "
            "Download it from the Google Cloud console."
        )

    def _flow() -> Any:
        # Imported lazily to keep import-time cost low and tests fast.
        from google_auth_oauthlib.flow import InstalledAppFlow

        flow = InstalledAppFlow.from_client_secrets_file(str(credentials_path), scopes=[scope])
        return flow.run_local_server(port=0, access_type="offline", prompt="consent")

    logger.info("oauth_consent_started", credentials_path=str(credentials_path), scope=scope)
    try:
        creds = await asyncio.to_thread(_flow)
    except Exception as exc:  # noqa: BLE001
        logger.exception("oauth_consent_failed", error=str(exc))
        raise AuthenticationError(str(exc)) from exc

    logger.info("oauth_consent_completed")
    return creds
