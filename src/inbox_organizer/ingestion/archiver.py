"""Best-effort archiving of ingested messages at Gmail."""

from __future__ import annotations

import structlog

from inbox_organizer.gmail.client import GmailClient
from inbox_organizer.models import MailAccount

logger = structlog.get_logger()


class Archiver:
    """Removes the INBOX label from messages that have been persisted."""

    def __init__(self, gmail: GmailClient) -> None:
        self._gmail = gmail

    async def archive(self, account: MailAccount, message_id: str) -> bool:
        """Archive a message, logging and swallowing any failure.

        Returns:
            True if Gmail accepted the change.
        """

        try:
            await self._gmail.modify_message(account, message_id, remove_label_ids=["INBOX"])
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "gmail_archive_failed",
                account_id=account.id,
                message_id=message_id,
                error=str(exc),
            )
            return False

        logger.debug("gmail_message_archived", account_id=account.id, message_id=message_id)
        return True
