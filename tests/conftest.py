"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import base64
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import pytest
import structlog

from inbox_organizer.config import Settings
from inbox_organizer.models import Category, MailAccount, MessageRef
from inbox_organizer.ollama import LLMResponse


def b64url(text: str) -> str:
    """Encode text the way Gmail encodes message bodies (unpadded base64url)."""
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


class ScriptedLLM:
    """`TextGenerator` double driven by a handler or a fixed answer."""

    def __init__(
        self,
        answer: str = "",
        handler: Callable[[str, str], str] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.answer = answer
        self.handler = handler
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def generate_text(
        self,
        prompt: str,
        model: str,
        max_tokens: int | None = None,
        system: str | None = None,
    ) -> LLMResponse:
        self.calls.append({"prompt": prompt, "model": model, "max_tokens": max_tokens, "system": system})
        if self.error is not None:
            raise self.error
        text = self.handler(prompt, model) if self.handler else self.answer
        return LLMResponse(text=text, model=model)


class FakeGmail:
    """In-memory stand-in for `GmailClient`."""

    def __init__(
        self,
        messages: dict[str, dict[str, Any]] | None = None,
        list_error: Exception | None = None,
        archive_error: Exception | None = None,
        trash_error: Exception | None = None,
    ) -> None:
        self.messages = messages or {}
        self.list_error = list_error
        self.archive_error = archive_error
        self.trash_error = trash_error
        self.list_calls: list[datetime] = []
        self.fetched: list[str] = []
        self.archived: list[str] = []
        self.trashed: list[str] = []

    async def list_new_messages(self, account, since, page_size=None):
        self.list_calls.append(since)
        if self.list_error is not None:
            raise self.list_error
        return [MessageRef(id=m["id"], thread_id=m.get("threadId")) for m in self.messages.values()]

    async def get_message(self, account, message_id):
        self.fetched.append(message_id)
        return self.messages.get(message_id)

    async def modify_message(self, account, message_id, *, remove_label_ids=None, add_label_ids=None):
        if self.archive_error is not None:
            raise self.archive_error
        self.archived.append(message_id)

    async def trash_message(self, account, message_id):
        if self.trash_error is not None:
            raise self.trash_error
        self.trashed.append(message_id)


def gmail_message(
    message_id: str,
    *,
    subject: str = "Weekly Newsletter - Python Tips",
    sender: str = "newsletter@python.org",
    html: str | None = None,
    plain: str | None = None,
    snippet: str = "Weekly Newsletter - Python Tips",
    labels: list[str] | None = None,
) -> dict[str, Any]:
    """Build a Gmail `format=full` message resource."""

    parts = []
    if plain is not None:
        parts.append({"mimeType": "text/plain", "body": {"data": b64url(plain)}})
    if html is not None:
        parts.append({"mimeType": "text/html", "body": {"data": b64url(html)}})

    return {
        "id": message_id,
        "threadId": f"thread-{message_id}",
        "labelIds": labels if labels is not None else ["INBOX", "UNREAD"],
        "snippet": snippet,
        "internalDate": "1735732800000",
        "payload": {
            "mimeType": "multipart/alternative",
            "headers": [
                {"name": "Subject", "value": subject},
                {"name": "From", "value": sender},
                {"name": "To", "value": "user@example.com"},
            ],
            "parts": parts,
        },
    }


@pytest.fixture
def settings() -> Settings:
    """Provide settings that ignore the environment and .env files."""
    return Settings(
        _env_file=None,
        gmail_api_base="https://gmail.test/gmail/v1",
        google_token_url="https://oauth.test/token",
        google_client_id="client-id",
        google_client_secret="client-secret",
        ollama_host="http://ollama.test:11434",
        summarization_model="sum-model",
        categorization_model="cat-model",
        unsubscribe_analysis_model="unsub-model",
        log_level="DEBUG",
        debug=True,
    )


@pytest.fixture
def account() -> MailAccount:
    return MailAccount(
        id="acc1",
        owner_id="u1",
        email="user@example.com",
        access_token="access-old",
        refresh_token="refresh-1",
        created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def categories() -> list[Category]:
    return [
        Category(id="c1", owner_id="u1", name="Work", description="Job related mail"),
        Category(id="c2", owner_id="u1", name="Newsletters", description="Subscriptions"),
    ]


@pytest.fixture
def sample_email_html() -> str:
    """Provide sample newsletter HTML for testing."""
    return (
        "<html><head><title>Tips</title><style>p {color: red}</style></head>"
        "<body><h1>Python Tips</h1><p>Welcome to this week's   Python tips!</p>"
        "<script>track()</script>"
        '<p><a href="https://python.org/unsubscribe?id=123">Unsubscribe</a></p>'
        "</body></html>"
    )


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo logging configuration done by CLI tests."""
    yield
    structlog.reset_defaults()
