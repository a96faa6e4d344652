"""SQLite-backed store for accounts, categories and ingested messages.

This is the store used by the CLI. It keeps the same contract as the hosted
application's database: messages are keyed on the provider message id, and
a second insert for the same id fails instead of overwriting.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog

from inbox_organizer.exceptions import StoreError
from inbox_organizer.models import Category, IngestedMessage, MailAccount
from inbox_organizer.store.base import ACCOUNT_PATCH_FIELDS

logger = structlog.get_logger()


_SCHEMA_VERSION = 1


class SqliteStore:
    """Implements `AccountStore` and `MessageStore` on a local SQLite file."""

    def __init__(self, db_path: Path) -> None:
        """Create a store.

        Args:
            db_path: Path to the SQLite database file.
        """

        self._db_path = db_path

    def initialize(self) -> None:
        """Create or upgrade the schema."""

        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL;")

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS _schema_meta (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );
                """
            )

            current_version = self._get_schema_version(conn)
            if current_version is None:
                self._create_schema_v1(conn)
                self._set_schema_version(conn, _SCHEMA_VERSION)
                conn.commit()
                logger.info("store_schema_created", version=_SCHEMA_VERSION)
                return

            if current_version != _SCHEMA_VERSION:
                raise StoreError(
                    f"Unsupported schema version {current_version}; expected {_SCHEMA_VERSION}"
                )

    # Accounts

    def add_account(self, account: MailAccount) -> None:
        with self._write() as conn:
            conn.execute(
                """
                INSERT INTO accounts (
                    id, owner_id, email, access_token, refresh_token, last_sync_at_iso, created_at_iso
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    account.id,
                    account.owner_id,
                    account.email,
                    account.access_token,
                    account.refresh_token,
                    _iso(account.last_sync_at),
                    account.created_at.isoformat(),
                ),
            )

    def get_account(self, account_id: str) -> MailAccount | None:
        with self._read() as conn:
            row = conn.execute("SELECT * FROM accounts WHERE id = ?", (account_id,)).fetchone()
        return self._row_to_account(row) if row else None

    def list_accounts(self, owner_id: str | None = None) -> list[MailAccount]:
        with self._read() as conn:
            if owner_id is None:
                rows = conn.execute("SELECT * FROM accounts ORDER BY created_at_iso").fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM accounts WHERE owner_id = ? ORDER BY created_at_iso",
                    (owner_id,),
                ).fetchall()
        return [self._row_to_account(row) for row in rows]

    def update_account(self, account_id: str, patch: dict[str, Any]) -> None:
        unknown = set(patch) - ACCOUNT_PATCH_FIELDS
        if unknown:
            raise StoreError(f"Unsupported account fields: {sorted(unknown)}")
        if not patch:
            return

        columns = {
            "access_token": "access_token",
            "refresh_token": "refresh_token",
            "email": "email",
            "last_sync_at": "last_sync_at_iso",
        }
        values = {
            columns[k]: _iso(v) if isinstance(v, datetime) else v for k, v in patch.items()
        }
        assignments = ", ".join(f"{col} = :{col}" for col in values)

        with self._write() as conn:
            cursor = conn.execute(
                f"UPDATE accounts SET {assignments} WHERE id = :account_id",  # noqa: S608
                {**values, "account_id": account_id},
            )
            if cursor.rowcount == 0:
                raise StoreError(f"Account not found: {account_id}")

    # Categories

    def add_category(self, category: Category) -> None:
        with self._write() as conn:
            conn.execute(
                "INSERT INTO categories (id, owner_id, name, description, color) VALUES (?, ?, ?, ?, ?)",
                (category.id, category.owner_id, category.name, category.description, category.color),
            )

    def list_categories(self, owner_id: str) -> list[Category]:
        with self._read() as conn:
            rows = conn.execute(
                "SELECT * FROM categories WHERE owner_id = ? ORDER BY rowid",
                (owner_id,),
            ).fetchall()
        return [
            Category(
                id=row["id"],
                owner_id=row["owner_id"],
                name=row["name"],
                description=row["description"] or "",
                color=row["color"],
            )
            for row in rows
        ]

    # Messages

    def message_exists(self, message_id: str) -> bool:
        with self._read() as conn:
            row = conn.execute("SELECT 1 FROM messages WHERE id = ?", (message_id,)).fetchone()
        return row is not None

    def insert_message(self, record: IngestedMessage) -> None:
        with self._write() as conn:
            conn.execute(
                """
                INSERT INTO messages (
                    id,
                    account_id,
                    owner_id,
                    category_id,
                    subject,
                    sender,
                    snippet,
                    html_body,
                    clean_text_body,
                    ai_summary,
                    received_at_iso,
                    is_read,
                    thread_id
                )
                VALUES (
                    :id,
                    :account_id,
                    :owner_id,
                    :category_id,
                    :subject,
                    :sender,
                    :snippet,
                    :html_body,
                    :clean_text_body,
                    :ai_summary,
                    :received_at_iso,
                    :is_read,
                    :thread_id
                )
                """,
                {
                    "id": record.id,
                    "account_id": record.account_id,
                    "owner_id": record.owner_id,
                    "category_id": record.category_id,
                    "subject": record.subject,
                    "sender": record.sender,
                    "snippet": record.snippet,
                    "html_body": record.html_body,
                    "clean_text_body": record.clean_text_body,
                    "ai_summary": record.ai_summary,
                    "received_at_iso": record.received_at.isoformat(),
                    "is_read": 1 if record.is_read else 0,
                    "thread_id": record.thread_id,
                },
            )

    def get_message(self, message_id: str) -> IngestedMessage | None:
        with self._read() as conn:
            row = conn.execute("SELECT * FROM messages WHERE id = ?", (message_id,)).fetchone()
        if row is None:
            return None
        return IngestedMessage(
            id=row["id"],
            account_id=row["account_id"],
            owner_id=row["owner_id"],
            category_id=row["category_id"],
            subject=row["subject"],
            sender=row["sender"],
            snippet=row["snippet"],
            html_body=row["html_body"],
            clean_text_body=row["clean_text_body"],
            ai_summary=row["ai_summary"],
            received_at=datetime.fromisoformat(row["received_at_iso"]),
            is_read=bool(row["is_read"]),
            thread_id=row["thread_id"],
        )

    def update_message_category(self, message_id: str, category_id: str | None) -> None:
        with self._write() as conn:
            cursor = conn.execute(
                "UPDATE messages SET category_id = ? WHERE id = ?",
                (category_id, message_id),
            )
            if cursor.rowcount == 0:
                raise StoreError(f"Message not found: {message_id}")

    def append_summary_note(self, message_id: str, note: str) -> None:
        with self._write() as conn:
            cursor = conn.execute(
                """
                UPDATE messages
                SET ai_summary = CASE
                    WHEN ai_summary IS NULL OR ai_summary = '' THEN :note
                    ELSE ai_summary || char(10) || char(10) || :note
                END
                WHERE id = :id
                """,
                {"note": note, "id": message_id},
            )
            if cursor.rowcount == 0:
                raise StoreError(f"Message not found: {message_id}")

    def delete_message(self, message_id: str) -> None:
        with self._write() as conn:
            cursor = conn.execute("DELETE FROM messages WHERE id = ?", (message_id,))
            if cursor.rowcount == 0:
                raise StoreError(f"Message not found: {message_id}")

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._db_path)
        try:
            conn.row_factory = sqlite3.Row
            yield conn
        finally:
            conn.close()

    @contextmanager
    def _read(self) -> Iterator[sqlite3.Connection]:
        try:
            with self._connect() as conn:
                yield conn
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc

    @contextmanager
    def _write(self) -> Iterator[sqlite3.Connection]:
        try:
            with self._connect() as conn:
                conn.execute("PRAGMA foreign_keys=ON;")
                yield conn
                conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc

    def _get_schema_version(self, conn: sqlite3.Connection) -> int | None:
        row = conn.execute(
            "SELECT value FROM _schema_meta WHERE key = 'schema_version'"
        ).fetchone()
        if row is None:
            return None
        return int(row[0])

    def _set_schema_version(self, conn: sqlite3.Connection, version: int) -> None:
        conn.execute(
            "INSERT OR REPLACE INTO _schema_meta(key, value) VALUES('schema_version', ?) ",
            (str(version),),
        )

    def _create_schema_v1(self, conn: sqlite3.Connection) -> None:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS accounts (
                id TEXT PRIMARY KEY,
                owner_id TEXT NOT NULL,
                email TEXT NOT NULL,
                access_token TEXT NOT NULL,
                refresh_token TEXT,
                last_sync_at_iso TEXT,
                created_at_iso TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS categories (
                id TEXT PRIMARY KEY,
                owner_id TEXT NOT NULL,
                name TEXT NOT NULL,
                description TEXT,
                color TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_categories_owner
                ON categories(owner_id);

            CREATE TABLE IF NOT EXISTS messages (
                id TEXT PRIMARY KEY,
                account_id TEXT NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
                owner_id TEXT NOT NULL,
                category_id TEXT REFERENCES categories(id) ON DELETE SET NULL,
                subject TEXT NOT NULL,
                sender TEXT NOT NULL,
                snippet TEXT NOT NULL,
                html_body TEXT NOT NULL,
                clean_text_body TEXT NOT NULL,
                ai_summary TEXT NOT NULL,
                received_at_iso TEXT NOT NULL,
                is_read INTEGER NOT NULL,
                thread_id TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_messages_account
                ON messages(account_id);

            CREATE INDEX IF NOT EXISTS idx_messages_category
                ON messages(category_id);
            """
        )

    def _row_to_account(self, row: sqlite3.Row) -> MailAccount:
        last_sync = row["last_sync_at_iso"]
        return MailAccount(
            id=row["id"],
            owner_id=row["owner_id"],
            email=row["email"],
            access_token=row["access_token"],
            refresh_token=row["refresh_token"],
            last_sync_at=datetime.fromisoformat(last_sync) if last_sync else None,
            created_at=datetime.fromisoformat(row["created_at_iso"]),
        )


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
