"""High-level organizer facade."""

from .organizer import InboxOrganizer

__all__ = ["InboxOrganizer"]
