"""Gmail REST client implementation.

This module talks to the Gmail v1 REST API over `httpx` with per-account
bearer tokens, so one client serves every connected account. All requests go
through `TokenRefresher`, which retries once after refreshing an expired
access token.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx
import structlog

from inbox_organizer.config import Settings
from inbox_organizer.exceptions import FetchError, GmailAPIError
from inbox_organizer.gmail.auth import TokenRefresher
from inbox_organizer.gmail.query import build_sync_query
from inbox_organizer.models import MailAccount, MessageRef

logger = structlog.get_logger()

_MAX_PAGE_SIZE = 500


class GmailClient:
    """Gmail API client for message listing, retrieval and label changes."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        refresher: TokenRefresher,
        settings: Settings | None = None,
    ) -> None:
        """Initialize Gmail client.

        Args:
            http: Shared async HTTP client.
            refresher: Token refresher used to authorize every request.
            settings: Application settings. If None, uses default settings.
        """
        from inbox_organizer.config import get_settings

        self.settings = settings or get_settings()
        self._http = http
        self._refresher = refresher
        self._base = self.settings.gmail_api_base.rstrip("/")
        logger.info("gmail_client_initialized", api_base=self._base)

    async def list_new_messages(
        self,
        account: MailAccount,
        since: datetime,
        page_size: int | None = None,
    ) -> list[MessageRef]:
        """List inbox messages received after `since`.

        Every page is followed until Gmail stops returning `nextPageToken`,
        so the whole window is listed before the caller advances its cursor.

        Args:
            account: Account to query.
            since: Lower bound of the sync window.
            page_size: Refs requested per page. Defaults to settings.gmail_max_results.

        Returns:
            Message refs in the order Gmail returned them. Empty when nothing matches.

        Raises:
            FetchError: If the list call fails or is rejected.
        """

        query = build_sync_query(since)
        size = min(_MAX_PAGE_SIZE, page_size or self.settings.gmail_max_results)
        logger.info("listing_messages", account_id=account.id, query=query, page_size=size)

        refs: list[MessageRef] = []
        page_token: str | None = None
        pages = 0
        while True:
            params: dict[str, Any] = {"q": query, "maxResults": size}
            if page_token:
                params["pageToken"] = page_token

            try:
                response = await self._refresher.with_valid_token(
                    account,
                    lambda token: self._http.get(
                        f"{self._base}/users/me/messages",
                        headers=_bearer(token),
                        params=params,
                        timeout=self.settings.http_timeout_seconds,
                    ),
                )
            except httpx.HTTPError as exc:
                logger.error("gmail_list_messages_failed", account_id=account.id, error=str(exc))
                raise FetchError(f"Message list request failed: {exc}") from exc

            if not response.is_success:
                logger.error(
                    "gmail_list_messages_failed",
                    account_id=account.id,
                    status_code=response.status_code,
                    body=response.text[:200],
                )
                raise FetchError(
                    f"Message list returned {response.status_code}",
                    status_code=response.status_code,
                )

            try:
                data = response.json()
            except ValueError as exc:
                raise FetchError("Message list returned a non-JSON body") from exc

            for item in data.get("messages") or []:
                if isinstance(item, dict) and item.get("id"):
                    refs.append(MessageRef.model_validate(item))

            pages += 1
            page_token = data.get("nextPageToken")
            if not page_token:
                break

        logger.info("listing_messages_completed", account_id=account.id, message_count=len(refs), pages=pages)
        return refs

    async def get_message(self, account: MailAccount, message_id: str) -> dict[str, Any] | None:
        """Get a full message by ID.

        Returns:
            The message resource, or None when the request fails. A single
            message failure never aborts the caller's batch.
        """

        logger.debug("getting_message", account_id=account.id, message_id=message_id)

        try:
            response = await self._refresher.with_valid_token(
                account,
                lambda token: self._http.get(
                    f"{self._base}/users/me/messages/{message_id}",
                    headers=_bearer(token),
                    params={"format": "full"},
                    timeout=self.settings.http_timeout_seconds,
                ),
            )
        except httpx.HTTPError as exc:
            logger.warning("gmail_get_message_failed", message_id=message_id, error=str(exc))
            return None

        if not response.is_success:
            logger.warning(
                "gmail_get_message_failed",
                message_id=message_id,
                status_code=response.status_code,
            )
            return None

        try:
            return response.json()
        except ValueError:
            logger.warning("gmail_get_message_invalid_json", message_id=message_id)
            return None

    async def modify_message(
        self,
        account: MailAccount,
        message_id: str,
        *,
        remove_label_ids: list[str] | None = None,
        add_label_ids: list[str] | None = None,
    ) -> None:
        """Add or remove labels on a message.

        Raises:
            GmailAPIError: If the request fails or is rejected.
        """

        body = {
            "removeLabelIds": remove_label_ids or [],
            "addLabelIds": add_label_ids or [],
        }
        try:
            response = await self._refresher.with_valid_token(
                account,
                lambda token: self._http.post(
                    f"{self._base}/users/me/messages/{message_id}/modify",
                    headers=_bearer(token),
                    json=body,
                    timeout=self.settings.http_timeout_seconds,
                ),
            )
        except httpx.HTTPError as exc:
            raise GmailAPIError(f"Modify request failed: {exc}") from exc

        if not response.is_success:
            raise GmailAPIError(f"Modify returned {response.status_code}")

    async def trash_message(self, account: MailAccount, message_id: str) -> None:
        """Move a message to the Gmail trash.

        Raises:
            GmailAPIError: If the request fails or is rejected.
        """

        try:
            response = await self._refresher.with_valid_token(
                account,
                lambda token: self._http.post(
                    f"{self._base}/users/me/messages/{message_id}/trash",
                    headers=_bearer(token),
                    timeout=self.settings.http_timeout_seconds,
                ),
            )
        except httpx.HTTPError as exc:
            raise GmailAPIError(f"Trash request failed: {exc}") from exc

        if not response.is_success:
            raise GmailAPIError(f"Trash returned {response.status_code}")
        logger.debug("gmail_message_trashed", account_id=account.id, message_id=message_id)

    async def get_profile_email(self, account: MailAccount) -> str:
        """Return the mailbox address the account's token belongs to.

        Raises:
            GmailAPIError: If the profile cannot be read.
        """

        try:
            response = await self._refresher.with_valid_token(
                account,
                lambda token: self._http.get(
                    f"{self._base}/users/me/profile",
                    headers=_bearer(token),
                    timeout=self.settings.http_timeout_seconds,
                ),
            )
        except httpx.HTTPError as exc:
            raise GmailAPIError(f"Profile request failed: {exc}") from exc

        if not response.is_success:
            raise GmailAPIError(f"Profile returned {response.status_code}")
        try:
            email = response.json().get("emailAddress")
        except ValueError as exc:
            raise GmailAPIError("Profile returned a non-JSON body") from exc
        if not email:
            raise GmailAPIError("Profile response has no emailAddress")
        return email


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
