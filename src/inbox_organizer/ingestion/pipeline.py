"""Incremental Gmail ingestion.

One sync pass per account:

1. List inbox messages received since the sync cursor (minus a safety buffer),
   or since the account was connected on a first sync. A failed listing aborts
   the account's pass and leaves the cursor untouched.
2. For every ref, in the order Gmail returned them: skip it if the provider id
   is already stored, fetch the full message, extract its body, summarize and
   categorize it, persist it, then archive it at Gmail.
3. Advance the cursor to "now".

Individual message failures are recorded in `SyncResult.errors` and never
abort the pass. The provider message id is the only deduplication key.

`delete_messages` and `recategorize` act on messages already stored.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog

from inbox_organizer.analysis import Categorizer, Summarizer
from inbox_organizer.config import Settings
from inbox_organizer.exceptions import FetchError, GmailAPIError, StoreError
from inbox_organizer.gmail.client import GmailClient
from inbox_organizer.gmail.parsing import extract_body, message_subject_and_sender, message_to_ingested
from inbox_organizer.gmail.query import sync_window_start
from inbox_organizer.ingestion.archiver import Archiver
from inbox_organizer.models import (
    NO_PLAIN_TEXT_PLACEHOLDER,
    BatchSyncResult,
    Category,
    DeleteResult,
    MailAccount,
    MessageRef,
    RecategorizeResult,
    SyncResult,
)
from inbox_organizer.store import AccountStore, MessageStore
from inbox_organizer.utils import ensure_aware, utc_now

logger = structlog.get_logger()


@dataclass(frozen=True)
class _MessageOutcome:
    imported: bool = False
    error: str | None = None


class IngestionOrchestrator:
    """Coordinates fetching, enrichment, persistence and archiving per account."""

    def __init__(
        self,
        gmail: GmailClient,
        account_store: AccountStore,
        message_store: MessageStore,
        summarizer: Summarizer,
        categorizer: Categorizer,
        archiver: Archiver,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        from inbox_organizer.config import get_settings

        self.settings = settings or get_settings()
        self._gmail = gmail
        self._accounts = account_store
        self._messages = message_store
        self._summarizer = summarizer
        self._categorizer = categorizer
        self._archiver = archiver
        self._clock = clock

    async def sync_account(
        self,
        account: MailAccount,
        categories: list[Category] | None = None,
        cancel: asyncio.Event | None = None,
    ) -> SyncResult:
        """Run one sync pass for an account.

        Args:
            account: Account to sync. Its tokens and cursor are updated in place.
            categories: Candidate categories. Loaded from the account store if None.
            cancel: When set, the pass stops before the next message and the
                cursor is not advanced.

        Returns:
            Counts of processed and imported messages plus per-item errors.
        """

        result = SyncResult(account_id=account.id)
        since = sync_window_start(account, timedelta(minutes=self.settings.sync_buffer_minutes))
        log = logger.bind(account_id=account.id)
        log.info("account_sync_started", since=since.isoformat())

        try:
            refs = await self._gmail.list_new_messages(account, since)
        except FetchError as exc:
            log.error("account_sync_listing_failed", error=str(exc))
            result.errors.append(f"Listing failed: {exc}")
            return result

        if refs and categories is None:
            categories = self._load_categories(account, result)

        for ref in refs:
            if cancel is not None and cancel.is_set():
                log.warning("account_sync_cancelled", processed=result.processed)
                result.cancelled = True
                break

            result.processed += 1
            try:
                outcome = await self._ingest_one(account, ref, categories or [])
            except Exception as exc:  # noqa: BLE001
                log.exception("message_ingest_crashed", message_id=ref.id)
                outcome = _MessageOutcome(error=f"{ref.id}: unexpected error: {exc}")

            if outcome.imported:
                result.imported += 1
            if outcome.error:
                result.errors.append(outcome.error)

        if not result.cancelled:
            self._advance_cursor(account, result)

        log.info(
            "account_sync_completed",
            processed=result.processed,
            imported=result.imported,
            error_count=len(result.errors),
            cursor_advanced=result.cursor_advanced,
        )
        return result

    async def sync_accounts(
        self,
        accounts: Iterable[MailAccount],
        cancel: asyncio.Event | None = None,
    ) -> BatchSyncResult:
        """Sync several accounts one after another.

        A failure in one account is recorded in its result and never stops
        the remaining accounts. Setting `cancel` stops the batch.
        """

        batch = BatchSyncResult()
        for account in accounts:
            if cancel is not None and cancel.is_set():
                break
            try:
                result = await self.sync_account(account, cancel=cancel)
            except Exception as exc:  # noqa: BLE001
                logger.exception("account_sync_crashed", account_id=account.id)
                result = SyncResult(account_id=account.id, errors=[f"Unexpected error: {exc}"])
            batch.results.append(result)

        logger.info(
            "batch_sync_completed",
            accounts=len(batch.results),
            imported=batch.total_imported,
            processed=batch.total_processed,
        )
        return batch

    async def recategorize(self, owner_id: str, message_ids: list[str]) -> RecategorizeResult:
        """Re-run categorization for stored messages against current categories."""

        result = RecategorizeResult()
        try:
            categories = self._accounts.list_categories(owner_id)
        except StoreError as exc:
            result.errors.append(f"Could not load categories: {exc}")
            return result

        for message_id in message_ids:
            try:
                message = self._messages.get_message(message_id)
            except StoreError as exc:
                result.errors.append(f"{message_id}: {exc}")
                continue
            if message is None or message.owner_id != owner_id:
                result.errors.append(f"{message_id}: not found")
                continue

            body = message.clean_text_body
            if body == NO_PLAIN_TEXT_PLACEHOLDER:
                body = message.snippet
            category_id = await self._categorizer.categorize(
                message.subject, message.sender, body, categories
            )
            try:
                self._messages.update_message_category(message_id, category_id)
            except StoreError as exc:
                result.errors.append(f"{message_id}: {exc}")
                continue
            result.updated += 1

        logger.info("recategorize_completed", updated=result.updated, error_count=len(result.errors))
        return result

    async def delete_messages(self, owner_id: str, message_ids: list[str]) -> DeleteResult:
        """Move messages to Gmail trash and remove them from the store.

        A Gmail failure is recorded but the stored copy is still removed.
        Every id is attempted; failures never stop the remaining ids.
        """

        result = DeleteResult()
        for message_id in message_ids:
            try:
                message = self._messages.get_message(message_id)
                if message is None or message.owner_id != owner_id:
                    result.errors.append(f"{message_id}: not found")
                    continue

                account = self._accounts.get_account(message.account_id)
                if account is None:
                    result.errors.append(f"{message_id}: account {message.account_id} not found")
                    continue

                try:
                    await self._gmail.trash_message(account, message_id)
                    result.trashed += 1
                except GmailAPIError as exc:
                    logger.warning("message_trash_failed", message_id=message_id, error=str(exc))
                    result.errors.append(f"{message_id}: trash failed: {exc}")

                self._messages.delete_message(message_id)
                result.deleted += 1
            except StoreError as exc:
                result.errors.append(f"{message_id}: {exc}")

        logger.info(
            "delete_completed",
            deleted=result.deleted,
            trashed=result.trashed,
            error_count=len(result.errors),
        )
        return result

    async def _ingest_one(
        self,
        account: MailAccount,
        ref: MessageRef,
        categories: list[Category],
    ) -> _MessageOutcome:
        try:
            if self._messages.message_exists(ref.id):
                return _MessageOutcome()
        except StoreError as exc:
            return _MessageOutcome(error=f"{ref.id}: existence check failed: {exc}")

        message = await self._gmail.get_message(account, ref.id)
        if message is None:
            return _MessageOutcome(error=f"{ref.id}: fetch failed")

        body = extract_body(message.get("payload"))
        subject, sender = message_subject_and_sender(message)
        text = body.clean if body.has_clean else str(message.get("snippet") or "")

        summary = await self._summarizer.summarize(subject, sender, text)
        category_id = await self._categorizer.categorize(subject, sender, text, categories)

        record = message_to_ingested(
            message,
            account=account,
            body=body,
            ai_summary=summary,
            category_id=category_id,
        )
        if not record.id:
            record = record.model_copy(update={"id": ref.id})

        try:
            self._messages.insert_message(record)
        except StoreError as exc:
            logger.error("message_persist_failed", message_id=ref.id, error=str(exc))
            return _MessageOutcome(error=f"{ref.id}: persist failed: {exc}")

        await self._archiver.archive(account, ref.id)
        return _MessageOutcome(imported=True)

    def _load_categories(self, account: MailAccount, result: SyncResult) -> list[Category]:
        try:
            return self._accounts.list_categories(account.owner_id)
        except StoreError as exc:
            logger.warning("categories_load_failed", account_id=account.id, error=str(exc))
            result.errors.append(f"Could not load categories: {exc}")
            return []

    def _advance_cursor(self, account: MailAccount, result: SyncResult) -> None:
        now = ensure_aware(self._clock())
        if account.last_sync_at is not None:
            now = max(now, ensure_aware(account.last_sync_at))

        try:
            self._accounts.update_account(account.id, {"last_sync_at": now})
        except StoreError as exc:
            logger.error("sync_cursor_update_failed", account_id=account.id, error=str(exc))
            result.errors.append(f"Could not advance sync cursor: {exc}")
            return

        account.last_sync_at = now
        result.cursor_advanced = True
