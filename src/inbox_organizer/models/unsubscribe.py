"""Unsubscribe link, page analysis and outcome models.

These are ephemeral: they are derived per request and never persisted.
The LLM response contracts (link list, page analysis) are validated
through these models before anything acts on them.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, field_validator


class UnsubscribeLink(BaseModel):
    """A candidate unsubscribe URL or mailto address."""

    url: str = Field(min_length=1, description="Full URL or mailto: address")
    text: str = Field(default="Unsubscribe", description="Link text or surrounding context")
    method: Literal["GET", "POST"] = Field(default="GET")

    @field_validator("url")
    @classmethod
    def _strip_url(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("url must not be blank")
        return value

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.strip().upper()
            return value if value in {"GET", "POST"} else "GET"
        return "GET" if value is None else value

    @field_validator("text", mode="before")
    @classmethod
    def _default_text(cls, value: object) -> object:
        if value is None or (isinstance(value, str) and not value.strip()):
            return "Unsubscribe"
        return value

    @property
    def is_mailto(self) -> bool:
        """True for mailto: links."""
        return self.url.lower().startswith("mailto:")


class PageIntent(str, Enum):
    """What an unsubscribe landing page asks of the visitor."""

    CLICK_BUTTON = "CLICK_BUTTON"
    FILL_FORM = "FILL_FORM"
    EMAIL_CONFIRMATION = "EMAIL_CONFIRMATION"
    CAPTCHA_REQUIRED = "CAPTCHA_REQUIRED"
    ALREADY_UNSUBSCRIBED = "ALREADY_UNSUBSCRIBED"
    ERROR = "ERROR"


class PageAction(BaseModel):
    """One DOM action prescribed by the page analysis."""

    type: str | None = Field(default=None, description="Element kind: button|input|select|checkbox")
    selector: str = Field(min_length=1, description="CSS selector or text locator")
    action: Literal["click", "type", "select"]
    value: str | None = Field(default=None, description="Value to type or select")

    @field_validator("action", mode="before")
    @classmethod
    def _lower_action(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("value", mode="before")
    @classmethod
    def _number_to_text(cls, value: object) -> object:
        # Option values such as 0 come back as JSON numbers.
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class PageAnalysis(BaseModel):
    """Validated LLM classification of an unsubscribe page."""

    action: PageIntent
    elements: list[PageAction] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    message: str | None = None

    @field_validator("action", mode="before")
    @classmethod
    def _upper_intent(cls, value: object) -> object:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("elements", mode="before")
    @classmethod
    def _null_elements(cls, value: object) -> object:
        return [] if value is None else value

    @field_validator("confidence", mode="before")
    @classmethod
    def _percent_to_ratio(cls, value: object) -> object:
        # Models sometimes answer on a 0-100 scale.
        if isinstance(value, (int, float)) and 1.0 < value <= 100.0:
            return value / 100.0
        return 0.0 if value is None else value


class UnsubscribeOutcome(BaseModel):
    """Result of attempting one unsubscribe link."""

    email_id: str | None = None
    success: bool
    method: str
    details: str | None = None
    error: str | None = None
    evidence: str | None = Field(default=None, description="Screenshot as a PNG data URL")


class UnsubscribeAttempt(BaseModel):
    """A link together with the outcome of executing it."""

    link: UnsubscribeLink
    outcome: UnsubscribeOutcome


class UnsubscribeReport(BaseModel):
    """Aggregate result of unsubscribing from one message."""

    email_id: str | None = None
    success: bool
    results: list[UnsubscribeAttempt] = Field(default_factory=list)
    summary: str


class BulkUnsubscribeResult(BaseModel):
    """Aggregate result of unsubscribing from several stored messages."""

    processed: int = 0
    successful: int = 0
    reports: list[UnsubscribeReport] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
