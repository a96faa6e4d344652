"""Helpers for parsing Gmail message resources into internal models."""

from __future__ import annotations

import base64
import binascii
import re
import warnings
from datetime import datetime, timezone
from typing import Any

from bs4 import BeautifulSoup

from inbox_organizer.models import (
    NO_CONTENT_PLACEHOLDER,
    NO_PLAIN_TEXT_PLACEHOLDER,
    ExtractedBody,
    IngestedMessage,
    MailAccount,
)
from inbox_organizer.utils import utc_now

_INLINE_WS_RE = re.compile(r"[ \t\r\f\v\u00a0]+")
_SKIPPED_TAGS = ["script", "style", "head", "img", "noscript"]


def _header_map(message: dict[str, Any]) -> dict[str, str]:
    payload = message.get("payload") or {}
    headers = payload.get("headers") or []
    result: dict[str, str] = {}
    for h in headers:
        name = h.get("name")
        value = h.get("value")
        if isinstance(name, str) and isinstance(value, str):
            # Gmail can include duplicates; keep the first for now.
            result.setdefault(name.lower(), value)
    return result


def decode_body_data(data: str | None) -> str:
    """Decode a Gmail base64url body to text. Undecodable input yields ''."""

    if not data:
        return ""
    padded = data + "=" * (-len(data) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded)
    except (binascii.Error, ValueError):
        return ""
    return raw.decode("utf-8", errors="replace")


def _find_part(part: dict[str, Any], mime_type: str) -> dict[str, Any] | None:
    """Depth-first search for the first part of `mime_type` that has body data."""

    if part.get("mimeType") == mime_type and (part.get("body") or {}).get("data"):
        return part
    for child in part.get("parts") or []:
        if isinstance(child, dict):
            found = _find_part(child, mime_type)
            if found is not None:
                return found
    return None


def html_to_text(html: str) -> str:
    """Convert HTML to visible text.

    Tags, scripts, styles and images are dropped, link targets are ignored
    (only the anchor text survives) and whitespace is collapsed.
    """

    if not html or not html.strip():
        return ""

    with warnings.catch_warnings():
        # Plain-text bodies that look like a URL make bs4 warn.
        warnings.simplefilter("ignore")
        soup = BeautifulSoup(html, "html.parser")

    for tag in soup(_SKIPPED_TAGS):
        tag.decompose()

    lines = []
    for line in soup.get_text("\n").splitlines():
        collapsed = _INLINE_WS_RE.sub(" ", line).strip()
        if collapsed:
            lines.append(collapsed)
    return "\n".join(lines)


def extract_body(payload: dict[str, Any] | None) -> ExtractedBody:
    """Decode a message payload into HTML and cleaned plain text.

    Prefers the first text/html part, then the first text/plain part, then
    the top-level body. Missing content is reported with placeholders.
    """

    payload = payload or {}
    part = _find_part(payload, "text/html") or _find_part(payload, "text/plain")

    if part is not None:
        content = decode_body_data(part["body"]["data"])
    else:
        content = decode_body_data((payload.get("body") or {}).get("data"))

    clean = html_to_text(content)
    return ExtractedBody(
        html=content or NO_CONTENT_PLACEHOLDER,
        clean=clean or NO_PLAIN_TEXT_PLACEHOLDER,
    )


def _parse_internal_date(value: Any) -> datetime:
    try:
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return utc_now()


def message_subject_and_sender(message: dict[str, Any]) -> tuple[str, str]:
    """Return (subject, sender) with the display defaults used for storage."""

    hm = _header_map(message)
    return hm.get("subject") or "No Subject", hm.get("from") or "Unknown Sender"


def message_to_ingested(
    message: dict[str, Any],
    *,
    account: MailAccount,
    body: ExtractedBody,
    ai_summary: str,
    category_id: str | None,
) -> IngestedMessage:
    """Convert a Gmail API message (format=full) plus enrichment into a record.

    Args:
        message: Gmail API message dict.
        account: Account the message was synced from.
        body: Extracted body renditions.
        ai_summary: Summary text.
        category_id: Matched category, or None.

    Returns:
        IngestedMessage: Record ready for persistence.
    """

    subject, sender = message_subject_and_sender(message)

    label_ids = message.get("labelIds") or []
    if not isinstance(label_ids, list):
        label_ids = []

    return IngestedMessage(
        id=str(message.get("id") or ""),
        account_id=account.id,
        owner_id=account.owner_id,
        category_id=category_id,
        subject=subject,
        sender=sender,
        snippet=str(message.get("snippet") or ""),
        html_body=body.html,
        clean_text_body=body.clean,
        ai_summary=ai_summary,
        received_at=_parse_internal_date(message.get("internalDate")),
        is_read="UNREAD" not in label_ids,
        thread_id=str(message.get("threadId") or "") or None,
    )
