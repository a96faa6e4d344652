"""Account and message stores.

The pipelines depend only on the `AccountStore` and `MessageStore` protocols.
"""

from .base import AccountStore, MessageStore
from .memory import InMemoryStore
from .sqlite import SqliteStore

__all__ = ["AccountStore", "InMemoryStore", "MessageStore", "SqliteStore"]
