"""Message summarization.

Summarization is best-effort: any failure yields a deterministic fallback so
that ingestion of the underlying message is never blocked.
"""

from __future__ import annotations

import structlog

from inbox_organizer.analysis.prompts import SUMMARY_SYSTEM, build_summary_prompt
from inbox_organizer.config import Settings
from inbox_organizer.ollama import TextGenerator

logger = structlog.get_logger()

_SUMMARY_MAX_TOKENS = 100


def fallback_summary(subject: str, sender: str) -> str:
    """Summary used when the model is unavailable or answers nothing."""

    return f"Email from {sender}: {subject}"


class Summarizer:
    """Produces a 1-2 sentence summary of a message."""

    def __init__(self, llm: TextGenerator, settings: Settings | None = None) -> None:
        from inbox_organizer.config import get_settings

        self.settings = settings or get_settings()
        self._llm = llm

    async def summarize(self, subject: str, sender: str, clean_body: str) -> str:
        """Summarize a message, never raising.

        Args:
            subject: Message subject.
            sender: From header.
            clean_body: Plain-text body.

        Returns:
            The model's summary, or the fallback summary on failure.
        """

        prompt = build_summary_prompt(
            subject=subject,
            sender=sender,
            body=clean_body,
            body_chars=self.settings.summary_body_chars,
        )
        try:
            response = await self._llm.generate_text(
                prompt,
                self.settings.summarization_model,
                max_tokens=_SUMMARY_MAX_TOKENS,
                system=SUMMARY_SYSTEM,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("summary_generation_failed", subject=subject, error=str(exc))
            return fallback_summary(subject, sender)

        summary = response.text.strip()
        if not summary:
            logger.warning("summary_generation_empty", subject=subject)
            return fallback_summary(subject, sender)
        return summary
