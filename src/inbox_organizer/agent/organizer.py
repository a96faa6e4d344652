"""Inbox organizer facade.

This module wires the Gmail, Ollama, browser and store components into the
user-facing operations: sync, recategorize, delete and unsubscribe.
"""

from __future__ import annotations

import asyncio

import httpx
import structlog

from inbox_organizer.analysis import Categorizer, Summarizer
from inbox_organizer.config import Settings
from inbox_organizer.gmail import GmailClient, HttpTokenGrant, TokenRefresher
from inbox_organizer.ingestion import Archiver, IngestionOrchestrator
from inbox_organizer.models import (
    BatchSyncResult,
    BulkUnsubscribeResult,
    DeleteResult,
    RecategorizeResult,
    SyncResult,
)
from inbox_organizer.ollama import OllamaClient, TextGenerator
from inbox_organizer.store import AccountStore, MessageStore, SqliteStore
from inbox_organizer.unsubscribe import (
    BrowserAutomation,
    PlaywrightBrowser,
    UnsubscribeAgent,
    UnsubscribeExecutor,
    UnsubscribeLinkExtractor,
)

logger = structlog.get_logger()


class InboxOrganizer:
    """Main entry point for embedding the organizer.

    Components not passed in are built from settings: a shared
    `httpx.AsyncClient`, an `OllamaClient`, a `PlaywrightBrowser` and a
    `SqliteStore` at `settings.database_path` serving as both stores.
    """

    def __init__(
        self,
        account_store: AccountStore | None = None,
        message_store: MessageStore | None = None,
        llm: TextGenerator | None = None,
        browser: BrowserAutomation | None = None,
        http: httpx.AsyncClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the organizer.

        Args:
            account_store: Account store. If None, a SQLite store is opened.
            message_store: Message store. If None, the account store is reused
                when it is a SQLite store, otherwise a SQLite store is opened.
            llm: Text generator. If None, an Ollama client is created.
            browser: Browser automation. If None, Playwright Chromium is used.
            http: Shared HTTP client. If None, one is created and owned.
            settings: Application settings. If None, uses default settings.
        """
        from inbox_organizer.config import get_settings

        self.settings = settings or get_settings()

        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(timeout=self.settings.http_timeout_seconds)

        if account_store is None or message_store is None:
            default_store = SqliteStore(self.settings.database_path)
            default_store.initialize()
            account_store = account_store or default_store
            message_store = message_store or default_store
        self.account_store = account_store
        self.message_store = message_store

        self.llm = llm or OllamaClient(self.http, self.settings)
        refresher = TokenRefresher(account_store, HttpTokenGrant(self.http, self.settings))
        self.gmail = GmailClient(self.http, refresher, self.settings)

        self.orchestrator = IngestionOrchestrator(
            gmail=self.gmail,
            account_store=account_store,
            message_store=message_store,
            summarizer=Summarizer(self.llm, self.settings),
            categorizer=Categorizer(self.llm, self.settings),
            archiver=Archiver(self.gmail),
            settings=self.settings,
        )
        self.unsubscriber = UnsubscribeAgent(
            extractor=UnsubscribeLinkExtractor(self.llm, self.settings),
            executor=UnsubscribeExecutor(browser or PlaywrightBrowser(self.settings), self.llm, self.settings),
            message_store=message_store,
        )
        logger.info("inbox_organizer_initialized")

    async def sync_all(
        self,
        owner_id: str | None = None,
        cancel: asyncio.Event | None = None,
    ) -> BatchSyncResult:
        """Sync every connected account, optionally for one owner only."""

        accounts = self.account_store.list_accounts(owner_id)
        return await self.orchestrator.sync_accounts(accounts, cancel=cancel)

    async def sync_account(self, account_id: str, cancel: asyncio.Event | None = None) -> SyncResult:
        """Sync one account by ID.

        Raises:
            KeyError: If the account does not exist.
        """

        account = self.account_store.get_account(account_id)
        if account is None:
            raise KeyError(account_id)
        return await self.orchestrator.sync_account(account, cancel=cancel)

    async def recategorize(self, owner_id: str, message_ids: list[str]) -> RecategorizeResult:
        return await self.orchestrator.recategorize(owner_id, message_ids)

    async def delete(self, owner_id: str, message_ids: list[str]) -> DeleteResult:
        return await self.orchestrator.delete_messages(owner_id, message_ids)

    async def unsubscribe(self, message_ids: list[str]) -> BulkUnsubscribeResult:
        return await self.unsubscriber.unsubscribe_emails(message_ids)

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    async def __aenter__(self) -> InboxOrganizer:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
