"""Unit tests for unsubscribe link discovery, execution and orchestration."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest
from conftest import ScriptedLLM

from inbox_organizer.exceptions import BrowserAutomationError, StoreError
from inbox_organizer.models import IngestedMessage, PageIntent, UnsubscribeLink
from inbox_organizer.store import InMemoryStore
from inbox_organizer.unsubscribe import (
    PlaywrightBrowser,
    UnsubscribeAgent,
    UnsubscribeExecutor,
    UnsubscribeLinkExtractor,
    fallback_link_extraction,
)
from inbox_organizer.unsubscribe.executor import parse_page_analysis
from inbox_organizer.unsubscribe.links import parse_link_response


class FakePage:
    def __init__(self, text: str = "Click to unsubscribe", failing_selectors: set[str] | None = None) -> None:
        self.text = text
        self.failing_selectors = failing_selectors or set()
        self.visited: list[tuple[str, int]] = []
        self.actions: list[tuple[str, str, str | None]] = []
        self.goto_error: Exception | None = None

    async def goto(self, url: str, timeout_ms: int) -> None:
        if self.goto_error is not None:
            raise self.goto_error
        self.visited.append((url, timeout_ms))

    async def screenshot(self) -> bytes:
        return b"\x89PNG"

    async def content(self) -> str:
        return "<html><body><p>From markup</p></body></html>"

    async def inner_text(self) -> str:
        return self.text

    async def _act(self, kind: str, selector: str, value: str | None) -> None:
        if selector in self.failing_selectors:
            raise TimeoutError(f"Timeout waiting for {selector}")
        self.actions.append((kind, selector, value))

    async def click(self, selector: str) -> None:
        await self._act("click", selector, None)

    async def fill(self, selector: str, value: str) -> None:
        await self._act("fill", selector, value)

    async def select_option(self, selector: str, value: str) -> None:
        await self._act("select", selector, value)


class FakeSession:
    def __init__(self, page: FakePage) -> None:
        self.page = page
        self.closed = 0

    async def new_page(self) -> FakePage:
        return self.page

    async def close(self) -> None:
        self.closed += 1


class FakeBrowser:
    def __init__(self, page: FakePage | None = None, launch_error: Exception | None = None) -> None:
        self.page = page or FakePage()
        self.launch_error = launch_error
        self.sessions: list[FakeSession] = []

    async def launch(self) -> FakeSession:
        if self.launch_error is not None:
            raise self.launch_error
        session = FakeSession(self.page)
        self.sessions.append(session)
        return session


def _analysis(action: str, elements: list[dict] | None = None, **extra) -> str:
    return json.dumps({"action": action, "elements": elements or [], "confidence": 0.9, **extra})


LINK = UnsubscribeLink(url="https://news.example.com/unsubscribe?u=1")


class TestLinkExtraction:
    """Test suite for UnsubscribeLinkExtractor."""

    @pytest.mark.asyncio
    async def test_uses_model_links(self, settings) -> None:
        llm = ScriptedLLM(answer='[{"url": "https://x.test/u", "text": "Unsubscribe here", "method": "get"}]')

        extractor = UnsubscribeLinkExtractor(llm, settings)
        links = await extractor.extract_links("<a href='https://x.test/u'>u</a>")

        assert [(link.url, link.text, link.method) for link in links] == [
            ("https://x.test/u", "Unsubscribe here", "GET")
        ]
        assert llm.calls[0]["model"] == "unsub-model"

    @pytest.mark.asyncio
    async def test_empty_array_means_no_links(self, settings) -> None:
        llm = ScriptedLLM(answer="[]")

        links = await UnsubscribeLinkExtractor(llm, settings).extract_links(
            "https://x.test/unsubscribe is in the footer"
        )

        assert links == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "answer",
        ["I could not find any links.", '[{"href": "nope"}]', '{"url": "https://x.test"}'],
    )
    async def test_malformed_answer_falls_back_to_patterns(self, settings, answer: str) -> None:
        content = (
            '<a href="https://news.example.com/unsubscribe?u=1&amp;t=2">Unsubscribe</a> '
            '<a href="https://news.example.com/article">Read</a> '
            '<a href="mailto:leave@news.example.com?subject=unsubscribe">email us</a>'
        )

        links = await UnsubscribeLinkExtractor(ScriptedLLM(answer=answer), settings).extract_links(content)

        assert [link.url for link in links] == [
            "https://news.example.com/unsubscribe?u=1&t=2",
            "mailto:leave@news.example.com?subject=unsubscribe",
        ]

    @pytest.mark.asyncio
    async def test_model_failure_falls_back_to_patterns(self, settings) -> None:
        llm = ScriptedLLM(error=RuntimeError("ollama down"))

        links = await UnsubscribeLinkExtractor(llm, settings).extract_links(
            "To stop: https://x.test/opt-out/123"
        )

        assert [link.url for link in links] == ["https://x.test/opt-out/123"]

    @pytest.mark.asyncio
    async def test_blank_content_skips_the_model(self, settings) -> None:
        llm = ScriptedLLM(answer="[]")

        assert await UnsubscribeLinkExtractor(llm, settings).extract_links("   ") == []
        assert llm.calls == []

    def test_parse_link_response_drops_invalid_items_and_duplicates(self) -> None:
        raw = '[{"url": "https://a.test/u"}, {"url": ""}, "https://a.test/u", {"url": "https://b.test/u"}]'

        assert [link.url for link in parse_link_response(raw)] == ["https://a.test/u", "https://b.test/u"]

    def test_fallback_ignores_unrelated_urls(self) -> None:
        assert fallback_link_extraction("Visit https://example.com/home today") == []


class TestUnsubscribeExecutor:
    """Test suite for UnsubscribeExecutor."""

    @pytest.mark.asyncio
    async def test_mailto_succeeds_without_browser(self, settings) -> None:
        browser = FakeBrowser()
        llm = ScriptedLLM()
        link = UnsubscribeLink(url="mailto:unsub@example.com?subject=unsubscribe")

        outcome = await UnsubscribeExecutor(browser, llm, settings).execute(link, email_id="m1")

        assert outcome.success is True
        assert outcome.method == "mailto"
        assert outcome.details == "Unsubscribe email would be sent to: unsub@example.com"
        assert outcome.email_id == "m1"
        assert browser.sessions == []
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_unsupported_scheme_fails(self, settings) -> None:
        browser = FakeBrowser()

        outcome = await UnsubscribeExecutor(browser, ScriptedLLM(), settings).execute(
            UnsubscribeLink(url="javascript:void(0)")
        )

        assert outcome.success is False
        assert browser.sessions == []

    @pytest.mark.asyncio
    async def test_click_button_flow(self, settings) -> None:
        browser = FakeBrowser()
        llm = ScriptedLLM(
            answer=_analysis(
                "CLICK_BUTTON",
                [{"type": "button", "selector": "#confirm", "action": "click"}],
            )
        )

        outcome = await UnsubscribeExecutor(browser, llm, settings).execute(LINK)

        assert outcome.success is True
        assert outcome.method == "CLICK_BUTTON"
        assert outcome.evidence.startswith("data:image/png;base64,")
        assert browser.page.visited == [(LINK.url, settings.navigation_timeout_ms)]
        assert browser.page.actions == [("click", "#confirm", None)]
        assert browser.sessions[0].closed == 1
        assert "Click to unsubscribe" in llm.calls[0]["prompt"]

    @pytest.mark.asyncio
    async def test_captcha_is_not_attempted(self, settings) -> None:
        browser = FakeBrowser()
        llm = ScriptedLLM(
            answer=_analysis(
                "CAPTCHA_REQUIRED",
                [{"selector": "#submit", "action": "click"}],
                message="reCAPTCHA on page",
            )
        )

        outcome = await UnsubscribeExecutor(browser, llm, settings).execute(LINK)

        assert outcome.success is False
        assert outcome.method == PageIntent.CAPTCHA_REQUIRED.value
        assert browser.page.actions == []
        assert browser.sessions[0].closed == 1

    @pytest.mark.asyncio
    async def test_already_unsubscribed_is_success(self, settings) -> None:
        browser = FakeBrowser()
        llm = ScriptedLLM(answer=_analysis("ALREADY_UNSUBSCRIBED", message="You are unsubscribed."))

        outcome = await UnsubscribeExecutor(browser, llm, settings).execute(LINK)

        assert outcome.success is True
        assert outcome.details == "You are unsubscribed."
        assert browser.sessions[0].closed == 1

    @pytest.mark.asyncio
    async def test_failed_action_does_not_stop_the_rest(self, settings) -> None:
        browser = FakeBrowser(FakePage(failing_selectors={"#missing"}))
        llm = ScriptedLLM(
            answer=_analysis(
                "FILL_FORM",
                [
                    {"selector": "#missing", "action": "click"},
                    {"selector": "#email", "action": "type", "value": "me@example.com"},
                    {"selector": "#reason", "action": "select"},
                    {"selector": "#frequency", "action": "select", "value": "never"},
                ],
            )
        )

        outcome = await UnsubscribeExecutor(browser, llm, settings).execute(LINK)

        assert outcome.success is True
        assert outcome.details == "Performed 2 of 4 actions"
        assert browser.page.actions == [
            ("fill", "#email", "me@example.com"),
            ("select", "#frequency", "never"),
        ]

    @pytest.mark.asyncio
    async def test_all_actions_failing_is_a_failure(self, settings) -> None:
        browser = FakeBrowser(FakePage(failing_selectors={"#gone"}))
        llm = ScriptedLLM(answer=_analysis("CLICK_BUTTON", [{"selector": "#gone", "action": "click"}]))

        outcome = await UnsubscribeExecutor(browser, llm, settings).execute(LINK)

        assert outcome.success is False
        assert outcome.error is not None
        assert browser.sessions[0].closed == 1

    @pytest.mark.asyncio
    async def test_invalid_model_response(self, settings) -> None:
        browser = FakeBrowser()

        llm = ScriptedLLM(answer="Looks like a button.")

        outcome = await UnsubscribeExecutor(browser, llm, settings).execute(LINK)

        assert outcome.success is False
        assert outcome.method == "ERROR"
        assert outcome.error == "Invalid AI response"
        assert browser.sessions[0].closed == 1

    @pytest.mark.asyncio
    async def test_null_elements_keep_the_classification(self, settings) -> None:
        browser = FakeBrowser()
        llm = ScriptedLLM(
            answer=json.dumps(
                {"action": "ALREADY_UNSUBSCRIBED", "elements": None, "confidence": 0.9, "message": "Done."}
            )
        )

        outcome = await UnsubscribeExecutor(browser, llm, settings).execute(LINK)

        assert outcome.success is True
        assert outcome.method == PageIntent.ALREADY_UNSUBSCRIBED.value
        assert outcome.details == "Done."

    @pytest.mark.asyncio
    async def test_unknown_element_action_is_dropped(self, settings) -> None:
        browser = FakeBrowser()
        llm = ScriptedLLM(
            answer=_analysis(
                "CLICK_BUTTON",
                [
                    {"selector": "#all", "action": "check"},
                    {"selector": "#confirm", "action": "click"},
                ],
            )
        )

        outcome = await UnsubscribeExecutor(browser, llm, settings).execute(LINK)

        assert outcome.success is True
        assert outcome.details == "Performed 1 of 1 actions"
        assert browser.page.actions == [("click", "#confirm", None)]

    @pytest.mark.asyncio
    async def test_numeric_select_value_is_used_as_text(self, settings) -> None:
        browser = FakeBrowser()
        llm = ScriptedLLM(
            answer=_analysis(
                "FILL_FORM",
                [
                    {"selector": "#reason", "action": "select", "value": 0},
                    {"selector": "#confirm", "action": "click"},
                ],
            )
        )

        outcome = await UnsubscribeExecutor(browser, llm, settings).execute(LINK)

        assert outcome.success is True
        assert browser.page.actions == [("select", "#reason", "0"), ("click", "#confirm", None)]

    def test_parse_page_analysis_drops_only_bad_elements(self) -> None:
        analysis = parse_page_analysis(
            json.dumps(
                {
                    "action": "click_button",
                    "elements": [
                        {"selector": "", "action": "click"},
                        "#go",
                        {"selector": "#ok", "action": "click"},
                    ],
                }
            )
        )

        assert analysis.action is PageIntent.CLICK_BUTTON
        assert [element.selector for element in analysis.elements] == ["#ok"]

    @pytest.mark.asyncio
    async def test_navigation_error_closes_session_once(self, settings) -> None:
        page = FakePage()
        page.goto_error = TimeoutError("Timeout 30000ms exceeded")
        browser = FakeBrowser(page)

        outcome = await UnsubscribeExecutor(browser, ScriptedLLM(), settings).execute(LINK)

        assert outcome.success is False
        assert "Timeout" in outcome.error
        assert browser.sessions[0].closed == 1

    @pytest.mark.asyncio
    async def test_empty_inner_text_uses_page_markup(self, settings) -> None:
        browser = FakeBrowser(FakePage(text="  "))
        llm = ScriptedLLM(answer=_analysis("ALREADY_UNSUBSCRIBED"))

        await UnsubscribeExecutor(browser, llm, settings).execute(LINK)

        assert "From markup" in llm.calls[0]["prompt"]

    @pytest.mark.asyncio
    async def test_launch_failure_is_reported(self, settings) -> None:
        browser = FakeBrowser(launch_error=BrowserAutomationError("chromium not installed"))

        outcome = await UnsubscribeExecutor(browser, ScriptedLLM(), settings).execute(LINK)

        assert outcome.success is False
        assert "chromium not installed" in outcome.error


class _StubChromium:
    def __init__(self, error: Exception) -> None:
        self.error = error

    async def launch(self, headless: bool) -> None:
        raise self.error


class _StubPlaywright:
    def __init__(self, error: Exception) -> None:
        self.chromium = _StubChromium(error)
        self.stopped = 0

    async def start(self) -> _StubPlaywright:
        return self

    async def stop(self) -> None:
        self.stopped += 1


class TestPlaywrightBrowser:
    """Test suite for PlaywrightBrowser launch cleanup."""

    @pytest.mark.asyncio
    async def test_any_launch_error_stops_the_driver(self, settings, monkeypatch) -> None:
        driver = _StubPlaywright(OSError("no display"))
        monkeypatch.setattr("playwright.async_api.async_playwright", lambda: driver)

        with pytest.raises(BrowserAutomationError, match="no display"):
            await PlaywrightBrowser(settings).launch()

        assert driver.stopped == 1



def _message(message_id: str, **fields) -> IngestedMessage:
    return IngestedMessage(
        id=message_id,
        account_id="acc1",
        owner_id="u1",
        received_at=datetime(2025, 1, 2, tzinfo=timezone.utc),
        ai_summary="A weekly digest.",
        **fields,
    )


def _agent(settings, llm, browser=None, store=None) -> UnsubscribeAgent:
    return UnsubscribeAgent(
        extractor=UnsubscribeLinkExtractor(llm, settings),
        executor=UnsubscribeExecutor(browser or FakeBrowser(), llm, settings),
        message_store=store,
    )


def _routing_llm(links: str, page: str) -> ScriptedLLM:
    return ScriptedLLM(handler=lambda prompt, model: links if "Email content:" in prompt else page)


class TestUnsubscribeAgent:
    """Test suite for UnsubscribeAgent."""

    @pytest.mark.asyncio
    async def test_aggregates_link_outcomes(self, settings) -> None:
        links = json.dumps(
            [
                {"url": "mailto:unsub@example.com"},
                {"url": "https://news.example.com/unsubscribe"},
            ]
        )
        llm = _routing_llm(links, _analysis("CAPTCHA_REQUIRED"))

        report = await _agent(settings, llm).unsubscribe_from_email("<html>footer</html>", email_id="m1")

        assert report.success is True
        assert report.summary == "Processed 2 unsubscribe links, 1 successful"
        assert [attempt.outcome.success for attempt in report.results] == [True, False]

    @pytest.mark.asyncio
    async def test_no_links_found(self, settings) -> None:
        report = await _agent(settings, ScriptedLLM(answer="[]")).unsubscribe_from_email("Hello there")

        assert report.success is False
        assert report.results == []
        assert report.summary == "No unsubscribe links found"

    @pytest.mark.asyncio
    async def test_bulk_unsubscribe_notes_each_message(self, settings) -> None:
        store = InMemoryStore(
            messages=[
                _message("m1", html_body='<a href="mailto:unsub@example.com">unsubscribe</a>'),
                _message("m2", snippet=""),
            ]
        )
        llm = _routing_llm('[{"url": "mailto:unsub@example.com"}]', _analysis("ERROR"))

        result = await _agent(settings, llm, store=store).unsubscribe_emails(["m1", "m2", "missing"])

        assert result.processed == 3
        assert result.successful == 1
        assert [report.summary for report in result.reports] == [
            "Processed 1 unsubscribe links, 1 successful",
            "Email content not found",
            "Email content not found",
        ]
        assert store.messages["m1"].ai_summary == (
            "A weekly digest.\n\n[Unsubscribe] Processed 1 unsubscribe links, 1 successful"
        )
        assert store.messages["m2"].ai_summary.endswith("[Unsubscribe] Email content not found")
        assert result.errors == []

    @pytest.mark.asyncio
    async def test_bulk_unsubscribe_falls_back_to_plain_text(self, settings) -> None:
        store = InMemoryStore(messages=[_message("m1", clean_text_body="Stop: https://x.test/unsubscribe")])
        llm = _routing_llm("no json", _analysis("ALREADY_UNSUBSCRIBED"))

        result = await _agent(settings, llm, store=store).unsubscribe_emails(["m1"])

        assert result.successful == 1
        assert result.reports[0].results[0].link.url == "https://x.test/unsubscribe"

    @pytest.mark.asyncio
    async def test_note_failure_is_recorded(self, settings) -> None:
        class ReadOnlyStore(InMemoryStore):
            def append_summary_note(self, message_id: str, note: str) -> None:
                raise StoreError("read-only database")

        store = ReadOnlyStore(messages=[_message("m1", snippet="")])

        result = await _agent(settings, ScriptedLLM(), store=store).unsubscribe_emails(["m1"])

        assert result.errors == ["m1: read-only database"]

    @pytest.mark.asyncio
    async def test_bulk_unsubscribe_needs_a_store(self, settings) -> None:
        with pytest.raises(RuntimeError):
            await _agent(settings, ScriptedLLM()).unsubscribe_emails(["m1"])
