"""Unsubscribe orchestration across links and stored messages."""

from __future__ import annotations

import structlog

from inbox_organizer.exceptions import StoreError
from inbox_organizer.models import (
    NO_CONTENT_PLACEHOLDER,
    NO_PLAIN_TEXT_PLACEHOLDER,
    BulkUnsubscribeResult,
    IngestedMessage,
    UnsubscribeAttempt,
    UnsubscribeReport,
)
from inbox_organizer.store import MessageStore
from inbox_organizer.unsubscribe.executor import UnsubscribeExecutor
from inbox_organizer.unsubscribe.links import UnsubscribeLinkExtractor

logger = structlog.get_logger()

NO_LINKS_SUMMARY = "No unsubscribe links found"
MISSING_CONTENT_SUMMARY = "Email content not found"


def unsubscribe_content(message: IngestedMessage) -> str:
    """Pick the richest stored content for link discovery."""

    if message.html_body and message.html_body != NO_CONTENT_PLACEHOLDER:
        return message.html_body
    if message.clean_text_body and message.clean_text_body != NO_PLAIN_TEXT_PLACEHOLDER:
        return message.clean_text_body
    return message.snippet or ""


class UnsubscribeAgent:
    """Finds unsubscribe links in a message and attempts each one in turn."""

    def __init__(
        self,
        extractor: UnsubscribeLinkExtractor,
        executor: UnsubscribeExecutor,
        message_store: MessageStore | None = None,
    ) -> None:
        self._extractor = extractor
        self._executor = executor
        self._messages = message_store

    async def unsubscribe_from_email(
        self,
        content: str,
        email_id: str | None = None,
    ) -> UnsubscribeReport:
        """Attempt every unsubscribe link found in `content`.

        Links are attempted sequentially; one failure does not stop the rest.

        Args:
            content: Message content, HTML or plain text.
            email_id: Message the content belongs to, echoed into the report.

        Returns:
            Report whose `success` is True when at least one attempt succeeded.
        """

        links = await self._extractor.extract_links(content)
        if not links:
            logger.info("unsubscribe_no_links", email_id=email_id)
            return UnsubscribeReport(email_id=email_id, success=False, results=[], summary=NO_LINKS_SUMMARY)

        results: list[UnsubscribeAttempt] = []
        for link in links:
            outcome = await self._executor.execute(link, email_id=email_id)
            results.append(UnsubscribeAttempt(link=link, outcome=outcome))

        successful = sum(1 for attempt in results if attempt.outcome.success)
        summary = f"Processed {len(results)} unsubscribe links, {successful} successful"
        logger.info("unsubscribe_email_processed", email_id=email_id, links=len(results), successful=successful)
        return UnsubscribeReport(
            email_id=email_id,
            success=successful > 0,
            results=results,
            summary=summary,
        )

    async def unsubscribe_emails(self, message_ids: list[str]) -> BulkUnsubscribeResult:
        """Unsubscribe from stored messages and note the result on each.

        Raises:
            RuntimeError: If the agent was built without a message store.
        """

        if self._messages is None:
            raise RuntimeError("UnsubscribeAgent needs a message store for bulk unsubscribe")

        result = BulkUnsubscribeResult()
        for message_id in message_ids:
            result.processed += 1
            try:
                message = self._messages.get_message(message_id)
            except StoreError as exc:
                result.errors.append(f"{message_id}: {exc}")
                message = None

            content = unsubscribe_content(message) if message is not None else ""
            if not content.strip():
                report = UnsubscribeReport(
                    email_id=message_id,
                    success=False,
                    results=[],
                    summary=MISSING_CONTENT_SUMMARY,
                )
            else:
                report = await self.unsubscribe_from_email(content, email_id=message_id)

            result.reports.append(report)
            if report.success:
                result.successful += 1

            if message is None:
                continue
            try:
                self._messages.append_summary_note(message_id, f"[Unsubscribe] {report.summary}")
            except StoreError as exc:
                logger.warning("unsubscribe_note_failed", email_id=message_id, error=str(exc))
                result.errors.append(f"{message_id}: {exc}")

        logger.info(
            "bulk_unsubscribe_finished",
            processed=result.processed,
            successful=result.successful,
            error_count=len(result.errors),
        )
        return result
