"""Message categorization against the user's own categories.

The model is asked for one category name. Its answer is matched back to a
category id with case-insensitive substring containment in either direction,
which tolerates the model echoing extra words ("Category: Work emails") or an
abbreviated name ("Newsletter" for "Newsletters"). No match means
uncategorized.
"""

from __future__ import annotations

import re

import structlog

from inbox_organizer.analysis.prompts import CATEGORY_SYSTEM, build_category_prompt
from inbox_organizer.config import Settings
from inbox_organizer.models import Category
from inbox_organizer.ollama import TextGenerator

logger = structlog.get_logger()

_CATEGORY_MAX_TOKENS = 20

_PREFIX_RE = re.compile(r"^\s*(?:category|answer)\s*:\s*", re.I)
_BULLET_RE = re.compile(r"^\s*(?:[-*•]+|\d+[.)])\s*")
_QUOTES = "\"'`*"


def normalize_category_answer(raw: str) -> str:
    """Reduce a raw model answer to the candidate category text."""

    for line in raw.splitlines():
        s = _PREFIX_RE.sub("", line)
        s = _BULLET_RE.sub("", s).strip().strip(_QUOTES).strip().rstrip(".").strip()
        if s:
            return s
    return ""


def match_category(answer: str, candidates: list[Category]) -> str | None:
    """Return the id of the first candidate matching `answer`, or None."""

    folded = answer.casefold()
    if not folded:
        return None
    for category in candidates:
        name = category.name.casefold()
        if not name:
            continue
        if folded in name or name in folded:
            return category.id
    return None


class Categorizer:
    """Picks the best-fit category id for a message."""

    def __init__(self, llm: TextGenerator, settings: Settings | None = None) -> None:
        from inbox_organizer.config import get_settings

        self.settings = settings or get_settings()
        self._llm = llm

    async def categorize(
        self,
        subject: str,
        sender: str,
        body: str,
        candidates: list[Category],
    ) -> str | None:
        """Categorize a message, never raising.

        Args:
            subject: Message subject.
            sender: From header.
            body: Plain-text body.
            candidates: The owner's categories.

        Returns:
            Matching category id, or None when there are no candidates, the
            answer matches none of them, or the model call fails.
        """

        if not candidates:
            return None

        prompt = build_category_prompt(
            subject=subject,
            sender=sender,
            body=body,
            categories=candidates,
            body_chars=self.settings.categorization_body_chars,
        )
        try:
            response = await self._llm.generate_text(
                prompt,
                self.settings.categorization_model,
                max_tokens=_CATEGORY_MAX_TOKENS,
                system=CATEGORY_SYSTEM,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("categorization_failed", subject=subject, error=str(exc))
            return None

        answer = normalize_category_answer(response.text)
        category_id = match_category(answer, candidates)
        if category_id is None:
            logger.info("categorization_no_match", subject=subject, answer=answer)
        return category_id
