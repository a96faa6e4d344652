"""Mail account, category and ingested message models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

NO_CONTENT_PLACEHOLDER = "No content available"
NO_PLAIN_TEXT_PLACEHOLDER = "No plain text available"


class MailAccount(BaseModel):
    """A connected Gmail account owned by a user."""

    id: str = Field(description="Account ID")
    owner_id: str = Field(description="ID of the owning user")
    email: str = Field(description="Mailbox address")
    access_token: str = Field(description="Current OAuth access token")
    refresh_token: str | None = Field(default=None, description="OAuth refresh token")
    last_sync_at: datetime | None = Field(
        default=None, description="Sync cursor: end of the last completed listing step"
    )
    created_at: datetime = Field(description="When the account was connected")


class Category(BaseModel):
    """A user-defined category used as a candidate for categorization."""

    id: str = Field(description="Category ID")
    owner_id: str = Field(description="ID of the owning user")
    name: str = Field(description="Display name, matched against LLM output")
    description: str = Field(default="", description="Hint given to the LLM")
    color: str = Field(default="#9CA3AF", description="Display color")


class MessageRef(BaseModel):
    """One entry of the Gmail message list response."""

    id: str = Field(description="Provider message ID")
    thread_id: str | None = Field(default=None, alias="threadId")

    model_config = {"populate_by_name": True}


class ExtractedBody(BaseModel):
    """HTML and cleaned plain-text renditions of a message body."""

    html: str = Field(default=NO_CONTENT_PLACEHOLDER)
    clean: str = Field(default=NO_PLAIN_TEXT_PLACEHOLDER)

    @property
    def has_html(self) -> bool:
        """True when an HTML or plain body was found."""
        return self.html != NO_CONTENT_PLACEHOLDER

    @property
    def has_clean(self) -> bool:
        """True when a plain-text rendering is available."""
        return self.clean != NO_PLAIN_TEXT_PLACEHOLDER


class IngestedMessage(BaseModel):
    """A Gmail message imported, summarized and categorized by the pipeline."""

    id: str = Field(description="Provider message ID (dedup key)")
    account_id: str = Field(description="Account the message was synced from")
    owner_id: str = Field(description="ID of the owning user")
    category_id: str | None = Field(default=None, description="Assigned category, None if uncategorized")
    subject: str = Field(default="No Subject")
    sender: str = Field(default="Unknown Sender")
    snippet: str = Field(default="")
    html_body: str = Field(default=NO_CONTENT_PLACEHOLDER)
    clean_text_body: str = Field(default=NO_PLAIN_TEXT_PLACEHOLDER)
    ai_summary: str = Field(default="")
    received_at: datetime = Field(description="Gmail internal date")
    is_read: bool = Field(default=False)
    thread_id: str | None = Field(default=None)


class SyncResult(BaseModel):
    """Outcome of one sync pass for one account."""

    account_id: str
    imported: int = 0
    processed: int = 0
    errors: list[str] = Field(default_factory=list)
    cursor_advanced: bool = False
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        """True when the pass completed and the cursor moved."""
        return self.cursor_advanced


class BatchSyncResult(BaseModel):
    """Aggregate outcome of syncing several accounts."""

    results: list[SyncResult] = Field(default_factory=list)

    @property
    def total_imported(self) -> int:
        return sum(r.imported for r in self.results)

    @property
    def total_processed(self) -> int:
        return sum(r.processed for r in self.results)

    @property
    def errors(self) -> list[str]:
        return [f"{r.account_id}: {e}" for r in self.results for e in r.errors]


class RecategorizeResult(BaseModel):
    """Outcome of re-running categorization for stored messages."""

    updated: int = 0
    errors: list[str] = Field(default_factory=list)


class DeleteResult(BaseModel):
    """Outcome of deleting stored messages and trashing them at Gmail."""

    deleted: int = Field(default=0, description="Messages removed from the store")
    trashed: int = Field(default=0, description="Messages moved to Gmail trash")
    errors: list[str] = Field(default_factory=list)
