"""Inbox Organizer - AI-assisted Gmail ingestion and unsubscribe automation.

This package syncs connected Gmail accounts, summarizes and categorizes
new mail with an Ollama LLM, archives it, and follows unsubscribe links
with a headless browser.
"""

__version__ = "0.1.0"

from inbox_organizer.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__"]
