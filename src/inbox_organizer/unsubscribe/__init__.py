"""LLM-guided unsubscribe automation."""

from .agent import UnsubscribeAgent
from .browser import BrowserAutomation, BrowserPage, BrowserSession, PlaywrightBrowser
from .executor import UnsubscribeExecutor
from .links import UnsubscribeLinkExtractor, fallback_link_extraction

__all__ = [
    "BrowserAutomation",
    "BrowserPage",
    "BrowserSession",
    "PlaywrightBrowser",
    "UnsubscribeAgent",
    "UnsubscribeExecutor",
    "UnsubscribeLinkExtractor",
    "fallback_link_extraction",
]
