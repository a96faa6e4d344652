"""Dictionary-backed store, used by tests and by embedders without a database."""

from __future__ import annotations

from typing import Any

from inbox_organizer.exceptions import StoreError
from inbox_organizer.models import Category, IngestedMessage, MailAccount
from inbox_organizer.store.base import ACCOUNT_PATCH_FIELDS


class InMemoryStore:
    """Implements both `AccountStore` and `MessageStore` on plain dicts."""

    def __init__(
        self,
        accounts: list[MailAccount] | None = None,
        categories: list[Category] | None = None,
        messages: list[IngestedMessage] | None = None,
    ) -> None:
        self.accounts: dict[str, MailAccount] = {a.id: a for a in accounts or []}
        self.categories: dict[str, Category] = {c.id: c for c in categories or []}
        self.messages: dict[str, IngestedMessage] = {m.id: m for m in messages or []}

    # Accounts

    def add_account(self, account: MailAccount) -> None:
        self.accounts[account.id] = account

    def get_account(self, account_id: str) -> MailAccount | None:
        account = self.accounts.get(account_id)
        return account.model_copy() if account else None

    def list_accounts(self, owner_id: str | None = None) -> list[MailAccount]:
        return [
            a.model_copy()
            for a in self.accounts.values()
            if owner_id is None or a.owner_id == owner_id
        ]

    def update_account(self, account_id: str, patch: dict[str, Any]) -> None:
        account = self.accounts.get(account_id)
        if account is None:
            raise StoreError(f"Account not found: {account_id}")
        unknown = set(patch) - ACCOUNT_PATCH_FIELDS
        if unknown:
            raise StoreError(f"Unsupported account fields: {sorted(unknown)}")
        self.accounts[account_id] = account.model_copy(update=patch)

    # Categories

    def add_category(self, category: Category) -> None:
        self.categories[category.id] = category

    def list_categories(self, owner_id: str) -> list[Category]:
        return [c for c in self.categories.values() if c.owner_id == owner_id]

    # Messages

    def message_exists(self, message_id: str) -> bool:
        return message_id in self.messages

    def insert_message(self, record: IngestedMessage) -> None:
        if record.id in self.messages:
            raise StoreError(f"Duplicate message id: {record.id}")
        self.messages[record.id] = record

    def get_message(self, message_id: str) -> IngestedMessage | None:
        return self.messages.get(message_id)

    def update_message_category(self, message_id: str, category_id: str | None) -> None:
        message = self.messages.get(message_id)
        if message is None:
            raise StoreError(f"Message not found: {message_id}")
        self.messages[message_id] = message.model_copy(update={"category_id": category_id})

    def append_summary_note(self, message_id: str, note: str) -> None:
        message = self.messages.get(message_id)
        if message is None:
            raise StoreError(f"Message not found: {message_id}")
        summary = f"{message.ai_summary}\n\n{note}" if message.ai_summary else note
        self.messages[message_id] = message.model_copy(update={"ai_summary": summary})

    def delete_message(self, message_id: str) -> None:
        if self.messages.pop(message_id, None) is None:
            raise StoreError(f"Message not found: {message_id}")
