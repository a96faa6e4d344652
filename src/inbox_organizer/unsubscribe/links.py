"""Unsubscribe link discovery in message content.

The LLM is asked for a JSON array of links first. When its answer cannot be
used (call failure, no JSON array, or an array without a single valid link)
a fixed set of URL patterns is applied to the raw content instead.
"""

from __future__ import annotations

import html
import re

import structlog
from pydantic import ValidationError as PydanticValidationError

from inbox_organizer.analysis.prompts import LINK_SYSTEM, build_link_prompt
from inbox_organizer.analysis.responses import extract_json_array
from inbox_organizer.config import Settings
from inbox_organizer.models import UnsubscribeLink
from inbox_organizer.ollama import TextGenerator

logger = structlog.get_logger()

_LINK_MAX_TOKENS = 1000

FALLBACK_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"https?://[^\s<>\"']+unsubscribe[^\s<>\"']*", re.I),
    re.compile(r"https?://[^\s<>\"']+opt-out[^\s<>\"']*", re.I),
    re.compile(r"https?://[^\s<>\"']+remove[^\s<>\"']*", re.I),
    re.compile(r"mailto:[^\s<>\"']+\?[^\s<>\"']*unsubscribe[^\s<>\"']*", re.I),
)


def _dedupe(links: list[UnsubscribeLink]) -> list[UnsubscribeLink]:
    seen: set[str] = set()
    unique: list[UnsubscribeLink] = []
    for link in links:
        if link.url not in seen:
            seen.add(link.url)
            unique.append(link)
    return unique


def fallback_link_extraction(content: str) -> list[UnsubscribeLink]:
    """Find unsubscribe-looking URLs and mailto links with plain patterns."""

    text = html.unescape(content or "")
    links: list[UnsubscribeLink] = []
    for pattern in FALLBACK_PATTERNS:
        for match in pattern.findall(text):
            links.append(UnsubscribeLink(url=match, text="Unsubscribe", method="GET"))
    return _dedupe(links)


def parse_link_response(raw: str) -> list[UnsubscribeLink]:
    """Validate an LLM link-extraction answer.

    Raises:
        ValueError: If the answer holds no JSON array, or a non-empty array
            without a single valid link.
    """

    items = extract_json_array(raw)
    links: list[UnsubscribeLink] = []
    for item in items:
        if isinstance(item, str):
            item = {"url": item}
        try:
            links.append(UnsubscribeLink.model_validate(item))
        except PydanticValidationError:
            logger.debug("unsubscribe_link_item_rejected", item=str(item)[:200])

    if items and not links:
        raise ValueError("no valid link objects in model response")
    return _dedupe(links)


class UnsubscribeLinkExtractor:
    """Finds candidate unsubscribe links in message content."""

    def __init__(self, llm: TextGenerator, settings: Settings | None = None) -> None:
        from inbox_organizer.config import get_settings

        self.settings = settings or get_settings()
        self._llm = llm

    async def extract_links(self, content: str) -> list[UnsubscribeLink]:
        """Extract unsubscribe links, never raising.

        Args:
            content: Raw message content, HTML or plain text.

        Returns:
            Candidate links in discovery order; empty if none were found.
        """

        if not content or not content.strip():
            return []

        prompt = build_link_prompt(content=content, content_chars=self.settings.link_extraction_chars)
        try:
            response = await self._llm.generate_text(
                prompt,
                self.settings.unsubscribe_analysis_model,
                max_tokens=_LINK_MAX_TOKENS,
                system=LINK_SYSTEM,
            )
            links = parse_link_response(response.text)
        except Exception as exc:  # noqa: BLE001
            logger.info("unsubscribe_link_fallback", reason=str(exc))
            links = fallback_link_extraction(content)

        logger.info("unsubscribe_links_extracted", link_count=len(links))
        return links
