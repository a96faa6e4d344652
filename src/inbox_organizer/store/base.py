"""Store interfaces consumed by the ingestion and unsubscribe pipelines.

The hosted application backs these with its own database; this package only
depends on the protocols below. `InMemoryStore` and `SqliteStore` are the
implementations shipped here.
"""

from __future__ import annotations

from typing import Any, Protocol

from inbox_organizer.models import Category, IngestedMessage, MailAccount


class AccountStore(Protocol):
    """Read and update connected accounts and their categories."""

    def get_account(self, account_id: str) -> MailAccount | None: ...

    def list_accounts(self, owner_id: str | None = None) -> list[MailAccount]: ...

    def update_account(self, account_id: str, patch: dict[str, Any]) -> None: ...

    def list_categories(self, owner_id: str) -> list[Category]: ...


class MessageStore(Protocol):
    """Persist ingested messages.

    `insert_message` must raise `StoreError` on failure; the other methods
    may raise it as well.
    """

    def message_exists(self, message_id: str) -> bool: ...

    def insert_message(self, record: IngestedMessage) -> None: ...

    def get_message(self, message_id: str) -> IngestedMessage | None: ...

    def update_message_category(self, message_id: str, category_id: str | None) -> None: ...

    def append_summary_note(self, message_id: str, note: str) -> None: ...

    def delete_message(self, message_id: str) -> None: ...


ACCOUNT_PATCH_FIELDS = frozenset({"access_token", "refresh_token", "last_sync_at", "email"})
