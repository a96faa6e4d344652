"""Data models for Inbox Organizer.

This module contains Pydantic models for data validation and serialization.
"""

from inbox_organizer.models.mail import (
    NO_CONTENT_PLACEHOLDER,
    NO_PLAIN_TEXT_PLACEHOLDER,
    BatchSyncResult,
    Category,
    DeleteResult,
    ExtractedBody,
    IngestedMessage,
    MailAccount,
    MessageRef,
    RecategorizeResult,
    SyncResult,
)
from inbox_organizer.models.unsubscribe import (
    BulkUnsubscribeResult,
    PageAction,
    PageAnalysis,
    PageIntent,
    UnsubscribeAttempt,
    UnsubscribeLink,
    UnsubscribeOutcome,
    UnsubscribeReport,
)

__all__ = [
    "NO_CONTENT_PLACEHOLDER",
    "NO_PLAIN_TEXT_PLACEHOLDER",
    "BatchSyncResult",
    "BulkUnsubscribeResult",
    "Category",
    "DeleteResult",
    "ExtractedBody",
    "IngestedMessage",
    "MailAccount",
    "MessageRef",
    "PageAction",
    "PageAnalysis",
    "PageIntent",
    "RecategorizeResult",
    "SyncResult",
    "UnsubscribeAttempt",
    "UnsubscribeLink",
    "UnsubscribeOutcome",
    "UnsubscribeReport",
]
