"""Browser-driven execution of a single unsubscribe link.

For an HTTP(S) link the executor opens an isolated browser context, loads the
page, captures a screenshot as evidence, asks the LLM what the page wants
(`PageAnalysis`) and performs the prescribed DOM actions in order. The context
is closed exactly once on every exit path.
"""

from __future__ import annotations

import base64
from urllib.parse import unquote, urlparse

import structlog
from pydantic import ValidationError as PydanticValidationError

from inbox_organizer.analysis.prompts import PAGE_SYSTEM, build_page_prompt
from inbox_organizer.analysis.responses import extract_json_object
from inbox_organizer.config import Settings
from inbox_organizer.exceptions import InboxOrganizerError
from inbox_organizer.gmail.parsing import html_to_text
from inbox_organizer.models import (
    PageAction,
    PageAnalysis,
    PageIntent,
    UnsubscribeLink,
    UnsubscribeOutcome,
)
from inbox_organizer.ollama import TextGenerator
from inbox_organizer.unsubscribe.browser import BrowserAutomation, BrowserPage, BrowserSession

logger = structlog.get_logger()

_ANALYSIS_MAX_TOKENS = 600


def parse_page_analysis(raw: str) -> PageAnalysis:
    """Validate an LLM page-analysis answer.

    Elements are validated one at a time and invalid ones are dropped, so a
    single malformed action never discards the page classification.

    Raises:
        ValueError: If the answer holds no JSON object.
        pydantic.ValidationError: If the intent itself is missing or unknown.
    """

    data = extract_json_object(raw)
    items = data.get("elements")
    elements: list[PageAction] = []
    for item in items if isinstance(items, list) else []:
        try:
            elements.append(PageAction.model_validate(item))
        except PydanticValidationError:
            logger.debug("unsubscribe_page_action_rejected", item=str(item)[:200])
    return PageAnalysis.model_validate({**data, "elements": elements})



class UnsubscribeExecutor:
    """Attempts one unsubscribe link and reports what happened."""

    def __init__(
        self,
        browser: BrowserAutomation,
        llm: TextGenerator,
        settings: Settings | None = None,
    ) -> None:
        from inbox_organizer.config import get_settings

        self.settings = settings or get_settings()
        self._browser = browser
        self._llm = llm

    async def execute(self, link: UnsubscribeLink, email_id: str | None = None) -> UnsubscribeOutcome:
        """Execute an unsubscribe link, never raising.

        Args:
            link: Link to follow.
            email_id: Message the link came from, echoed into the outcome.

        Returns:
            The outcome; failures carry an `error`.
        """

        log = logger.bind(url=link.url, email_id=email_id)

        if link.is_mailto:
            address = unquote(link.url[len("mailto:"):].split("?", 1)[0])
            log.info("unsubscribe_mailto_noted", address=address)
            return UnsubscribeOutcome(
                email_id=email_id,
                success=True,
                method="mailto",
                details=f"Unsubscribe email would be sent to: {address}",
            )

        if urlparse(link.url).scheme.lower() not in {"http", "https"}:
            return UnsubscribeOutcome(
                email_id=email_id,
                success=False,
                method=PageIntent.ERROR.value,
                error=f"Unsupported link: {link.url}",
            )

        try:
            session = await self._browser.launch()
        except Exception as exc:  # noqa: BLE001
            log.error("unsubscribe_browser_launch_failed", error=str(exc))
            return UnsubscribeOutcome(
                email_id=email_id,
                success=False,
                method=PageIntent.ERROR.value,
                error=f"Browser launch failed: {exc}",
            )

        try:
            return await self._drive(session, link, email_id)
        except Exception as exc:  # noqa: BLE001
            log.warning("unsubscribe_page_failed", error=str(exc))
            return UnsubscribeOutcome(
                email_id=email_id,
                success=False,
                method=PageIntent.ERROR.value,
                error=str(exc) or type(exc).__name__,
            )
        finally:
            try:
                await session.close()
            except Exception as exc:  # noqa: BLE001
                log.warning("unsubscribe_browser_close_failed", error=str(exc))

    async def _drive(
        self,
        session: BrowserSession,
        link: UnsubscribeLink,
        email_id: str | None,
    ) -> UnsubscribeOutcome:
        page = await session.new_page()
        await page.goto(link.url, timeout_ms=self.settings.navigation_timeout_ms)

        screenshot = await page.screenshot()
        evidence = "data:image/png;base64," + base64.b64encode(screenshot).decode("ascii")
        page_text = (await page.inner_text()).strip()
        if not page_text:
            page_text = html_to_text(await page.content())

        analysis = await self._analyze(link.url, page_text)
        if analysis is None:
            return UnsubscribeOutcome(
                email_id=email_id,
                success=False,
                method=PageIntent.ERROR.value,
                error="Invalid AI response",
                evidence=evidence,
            )

        logger.info(
            "unsubscribe_page_analyzed",
            url=link.url,
            intent=analysis.action.value,
            confidence=analysis.confidence,
            action_count=len(analysis.elements),
        )

        if analysis.action is PageIntent.CAPTCHA_REQUIRED:
            return UnsubscribeOutcome(
                email_id=email_id,
                success=False,
                method=analysis.action.value,
                details=analysis.message,
                error="CAPTCHA required; not attempted",
                evidence=evidence,
            )

        if analysis.action is PageIntent.ALREADY_UNSUBSCRIBED:
            return UnsubscribeOutcome(
                email_id=email_id,
                success=True,
                method=analysis.action.value,
                details=analysis.message or "Already unsubscribed",
                evidence=evidence,
            )

        performed = await self._perform(page, analysis.elements)
        if performed:
            details = f"Performed {performed} of {len(analysis.elements)} actions"
        else:
            details = analysis.message or "No action could be performed"

        return UnsubscribeOutcome(
            email_id=email_id,
            success=performed > 0,
            method=analysis.action.value,
            details=details,
            error=None if performed else "No prescribed action succeeded",
            evidence=evidence,
        )

    async def _analyze(self, url: str, page_text: str) -> PageAnalysis | None:
        prompt = build_page_prompt(
            url=url,
            page_text=page_text,
            page_chars=self.settings.page_analysis_chars,
        )
        try:
            response = await self._llm.generate_text(
                prompt,
                self.settings.unsubscribe_analysis_model,
                max_tokens=_ANALYSIS_MAX_TOKENS,
                system=PAGE_SYSTEM,
            )
            return parse_page_analysis(response.text)
        except (InboxOrganizerError, ValueError, PydanticValidationError) as exc:
            logger.warning("unsubscribe_page_analysis_invalid", url=url, error=str(exc))
            return None

    async def _perform(self, page: BrowserPage, actions: list[PageAction]) -> int:
        performed = 0
        for step, action in enumerate(actions, start=1):
            try:
                if action.action == "click":
                    await page.click(action.selector)
                elif action.action == "type":
                    await page.fill(action.selector, action.value or "")
                elif action.value is None:
                    raise ValueError("select action without a value")
                else:
                    await page.select_option(action.selector, action.value)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "unsubscribe_action_failed",
                    step=step,
                    action=action.action,
                    selector=action.selector,
                    error=str(exc),
                )
                continue
            performed += 1
        return performed
