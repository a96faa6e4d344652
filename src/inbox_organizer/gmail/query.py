"""Sync window and Gmail search query construction."""

from __future__ import annotations

from datetime import datetime, timedelta

from inbox_organizer.models import MailAccount


def sync_window_start(account: MailAccount, buffer: timedelta) -> datetime:
    """Return the lower bound of the next incremental sync.

    A previously synced account restarts `buffer` before its cursor so that
    late-arriving mail and clock skew are tolerated; a first sync starts at
    the account's creation date.
    """

    if account.last_sync_at is not None:
        return account.last_sync_at - buffer
    return account.created_at


def build_sync_query(since: datetime) -> str:
    """Build the Gmail search query for inbox mail received after `since`.

    Gmail's `after:` operator takes a YYYY/MM/DD date, so the window is
    widened to the start of that day.
    """

    return f"in:inbox -in:sent after:{since.strftime('%Y/%m/%d')}"
