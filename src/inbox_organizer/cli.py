"""Command-line interface for Inbox Organizer.

This module provides the main entry point for the CLI application. All
commands work against the local SQLite store.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import uuid
from pathlib import Path

import structlog

from inbox_organizer import __version__
from inbox_organizer.agent import InboxOrganizer
from inbox_organizer.config import Settings, get_settings
from inbox_organizer.exceptions import InboxOrganizerError
from inbox_organizer.gmail.auth import run_consent_flow
from inbox_organizer.models import Category, MailAccount
from inbox_organizer.store import SqliteStore
from inbox_organizer.utils import utc_now

logger = structlog.get_logger()

DEFAULT_OWNER = "local"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="inbox-organizer", description="Inbox Organizer")
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Path to the SQLite store (default: settings database_path)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Account commands
    accounts_parser = subparsers.add_parser("accounts", help="Connect and list Gmail accounts")
    accounts_sub = accounts_parser.add_subparsers(dest="accounts_command", required=True)

    connect_parser = accounts_sub.add_parser(
        "connect",
        help="Run the OAuth consent flow in a browser and store the account",
    )
    connect_parser.add_argument("--owner", default=DEFAULT_OWNER, help="Owner ID for the account")

    list_accounts_parser = accounts_sub.add_parser("list", help="List connected accounts")
    list_accounts_parser.add_argument("--owner", default=None, help="Only accounts of this owner")

    # Category commands
    categories_parser = subparsers.add_parser("categories", help="Manage categories")
    categories_sub = categories_parser.add_subparsers(dest="categories_command", required=True)

    add_category_parser = categories_sub.add_parser("add", help="Add a category")
    add_category_parser.add_argument("name", help="Category name, matched against the LLM answer")
    add_category_parser.add_argument("--description", default="", help="Hint given to the LLM")
    add_category_parser.add_argument("--color", default="#9CA3AF", help="Display color")
    add_category_parser.add_argument("--owner", default=DEFAULT_OWNER, help="Owner ID")

    list_categories_parser = categories_sub.add_parser("list", help="List categories")
    list_categories_parser.add_argument("--owner", default=DEFAULT_OWNER, help="Owner ID")

    # Pipelines
    sync_parser = subparsers.add_parser("sync", help="Import, summarize, categorize and archive new mail")
    sync_parser.add_argument("--account", default=None, help="Sync only this account ID")
    sync_parser.add_argument("--owner", default=None, help="Sync only accounts of this owner")

    recategorize_parser = subparsers.add_parser(
        "recategorize",
        help="Re-run categorization for stored messages",
    )
    recategorize_parser.add_argument("owner", help="Owner ID")
    recategorize_parser.add_argument("message_ids", nargs="+", help="Stored message IDs")

    delete_parser = subparsers.add_parser(
        "delete",
        help="Move stored messages to Gmail trash and remove them locally",
    )
    delete_parser.add_argument("owner", help="Owner ID")
    delete_parser.add_argument("message_ids", nargs="+", help="Stored message IDs")

    unsubscribe_parser = subparsers.add_parser(
        "unsubscribe",
        help="Find and follow unsubscribe links in stored messages",
    )
    unsubscribe_parser.add_argument("message_ids", nargs="+", help="Stored message IDs")

    return parser


def _open_store(args: argparse.Namespace, settings: Settings) -> SqliteStore:
    store = SqliteStore(args.db or settings.database_path)
    store.initialize()
    return store


async def _cmd_accounts_connect(args: argparse.Namespace, settings: Settings) -> int:
    store = _open_store(args, settings)
    creds = await run_consent_flow(settings.gmail_credentials_path, settings.gmail_scope)

    account = MailAccount(
        id=uuid.uuid4().hex,
        owner_id=args.owner,
        email="",
        access_token=creds.token,
        refresh_token=creds.refresh_token,
        created_at=utc_now(),
    )
    async with InboxOrganizer(account_store=store, message_store=store, settings=settings) as organizer:
        email = await organizer.gmail.get_profile_email(account)

    store.add_account(account.model_copy(update={"email": email}))
    print(f"Connected {email} as account {account.id}")
    return 0


def _cmd_accounts_list(args: argparse.Namespace, settings: Settings) -> int:
    store = _open_store(args, settings)
    for account in store.list_accounts(args.owner):
        last_sync = account.last_sync_at.isoformat() if account.last_sync_at else "(never)"
        print(f"{account.id}\t{account.owner_id}\t{account.email}\t{last_sync}")
    return 0


def _cmd_categories_add(args: argparse.Namespace, settings: Settings) -> int:
    store = _open_store(args, settings)
    category = Category(
        id=uuid.uuid4().hex,
        owner_id=args.owner,
        name=args.name,
        description=args.description,
        color=args.color,
    )
    store.add_category(category)
    print(f"Added category {category.name} ({category.id})")
    return 0


def _cmd_categories_list(args: argparse.Namespace, settings: Settings) -> int:
    store = _open_store(args, settings)
    for category in store.list_categories(args.owner):
        print(f"{category.id}\t{category.name}\t{category.color}\t{category.description}")
    return 0


async def _cmd_sync(args: argparse.Namespace, settings: Settings) -> int:
    store = _open_store(args, settings)
    async with InboxOrganizer(account_store=store, message_store=store, settings=settings) as organizer:
        if args.account:
            try:
                results = [await organizer.sync_account(args.account)]
            except KeyError:
                print(f"Unknown account: {args.account}", file=sys.stderr)
                return 2
        else:
            results = (await organizer.sync_all(args.owner)).results

    failed = False
    for result in results:
        print(f"{result.account_id}: imported {result.imported} of {result.processed} processed")
        for error in result.errors:
            print(f"  error: {error}")
        failed = failed or not result.ok
    return 1 if failed else 0


async def _cmd_recategorize(args: argparse.Namespace, settings: Settings) -> int:
    store = _open_store(args, settings)
    async with InboxOrganizer(account_store=store, message_store=store, settings=settings) as organizer:
        result = await organizer.recategorize(args.owner, args.message_ids)

    print(f"Updated {result.updated} of {len(args.message_ids)} messages")
    for error in result.errors:
        print(f"  error: {error}")
    return 1 if result.errors else 0


async def _cmd_delete(args: argparse.Namespace, settings: Settings) -> int:
    store = _open_store(args, settings)
    async with InboxOrganizer(account_store=store, message_store=store, settings=settings) as organizer:
        result = await organizer.delete(args.owner, args.message_ids)

    print(f"Deleted {result.deleted} messages, {result.trashed} moved to Gmail trash")
    for error in result.errors:
        print(f"  error: {error}")
    return 1 if result.errors else 0


async def _cmd_unsubscribe(args: argparse.Namespace, settings: Settings) -> int:
    store = _open_store(args, settings)
    async with InboxOrganizer(account_store=store, message_store=store, settings=settings) as organizer:
        result = await organizer.unsubscribe(args.message_ids)

    for report in result.reports:
        print(f"{report.email_id}: {report.summary}")
        for attempt in report.results:
            status = "ok" if attempt.outcome.success else "failed"
            reason = attempt.outcome.details or attempt.outcome.error or ""
            print(f"  [{status}] {attempt.link.url} {reason}".rstrip())
    for error in result.errors:
        print(f"  error: {error}")
    print(f"Processed {result.processed} messages, {result.successful} successful")
    return 0


def _configure_logging(settings: Settings) -> None:
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
    )


def _dispatch(parsed: argparse.Namespace, settings: Settings) -> int:
    if parsed.command == "accounts":
        if parsed.accounts_command == "connect":
            return asyncio.run(_cmd_accounts_connect(parsed, settings))
        if parsed.accounts_command == "list":
            return _cmd_accounts_list(parsed, settings)
    if parsed.command == "categories":
        if parsed.categories_command == "add":
            return _cmd_categories_add(parsed, settings)
        if parsed.categories_command == "list":
            return _cmd_categories_list(parsed, settings)
    if parsed.command == "sync":
        return asyncio.run(_cmd_sync(parsed, settings))
    if parsed.command == "recategorize":
        return asyncio.run(_cmd_recategorize(parsed, settings))
    if parsed.command == "delete":
        return asyncio.run(_cmd_delete(parsed, settings))
    if parsed.command == "unsubscribe":
        return asyncio.run(_cmd_unsubscribe(parsed, settings))

    logger.error("unknown_command", command=parsed.command)
    return 2


def main(args: list[str] | None = None) -> int:
    """Main entry point for the Inbox Organizer CLI.

    Args:
        args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    if args is None:
        args = sys.argv[1:]

    settings = get_settings()
    _configure_logging(settings)

    parser = _build_parser()
    parsed = parser.parse_args(args)

    logger.info("inbox_organizer_started", version=__version__, debug=settings.debug)

    try:
        return _dispatch(parsed, settings)
    except InboxOrganizerError as exc:
        logger.error("command_failed", command=parsed.command, error=str(exc))
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
