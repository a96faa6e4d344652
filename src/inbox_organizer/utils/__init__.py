"""Utility functions for Inbox Organizer."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so they can be compared with aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def truncate(text: str, limit: int) -> str:
    """Cut text to at most `limit` characters.

    Args:
        text: Text to shorten.
        limit: Maximum number of characters to keep. Non-positive keeps nothing.

    Returns:
        The original text, or its first `limit` characters.
    """
    if limit <= 0:
        return ""
    return text if len(text) <= limit else text[:limit]


def mask_token(token: str | None) -> str:
    """Render a credential safely for logs."""
    if not token:
        return "<none>"
    return token[:6] + "..."
