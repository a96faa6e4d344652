"""Unit tests for Gmail body extraction and message parsing helpers."""

from datetime import datetime, timezone

from conftest import b64url, gmail_message

from inbox_organizer.gmail.parsing import (
    decode_body_data,
    extract_body,
    html_to_text,
    message_to_ingested,
)
from inbox_organizer.models import NO_CONTENT_PLACEHOLDER, NO_PLAIN_TEXT_PLACEHOLDER, ExtractedBody


def test_html_to_text_keeps_visible_text_only(sample_email_html) -> None:
    text = html_to_text(sample_email_html)

    assert text.splitlines() == [
        "Python Tips",
        "Welcome to this week's Python tips!",
        "Unsubscribe",
    ]
    assert "track()" not in text
    assert "color" not in text
    assert "python.org/unsubscribe" not in text


def test_decode_body_data_handles_missing_padding_and_garbage() -> None:
    assert decode_body_data(b64url("héllo")) == "héllo"
    assert decode_body_data(None) == ""
    assert decode_body_data("!!!") == ""


class TestExtractBody:
    """Test suite for extract_body."""

    def test_prefers_html_part(self) -> None:
        message = gmail_message("m1", plain="plain version", html="<p>html <b>version</b></p>")

        body = extract_body(message["payload"])

        assert body.html == "<p>html <b>version</b></p>"
        assert body.clean == "html\nversion"

    def test_falls_back_to_plain_part(self) -> None:
        message = gmail_message("m1", plain="Hello\n\n  there  ")

        body = extract_body(message["payload"])

        assert body.html == "Hello\n\n  there  "
        assert body.clean == "Hello\nthere"

    def test_finds_nested_parts(self) -> None:
        payload = {
            "mimeType": "multipart/mixed",
            "parts": [
                {"mimeType": "application/pdf", "body": {"attachmentId": "a1"}},
                {
                    "mimeType": "multipart/alternative",
                    "parts": [{"mimeType": "text/html", "body": {"data": b64url("<p>deep</p>")}}],
                },
            ],
        }

        assert extract_body(payload).clean == "deep"

    def test_uses_top_level_body(self) -> None:
        payload = {"mimeType": "text/plain", "body": {"data": b64url("single part")}}

        assert extract_body(payload).clean == "single part"

    def test_missing_content_yields_placeholders(self) -> None:
        body = extract_body({"mimeType": "multipart/alternative", "parts": []})

        assert body == ExtractedBody(html=NO_CONTENT_PLACEHOLDER, clean=NO_PLAIN_TEXT_PLACEHOLDER)
        assert extract_body(None).has_html is False


def test_message_to_ingested_maps_fields(account) -> None:
    message = gmail_message("m1", html="<p>Hi</p>", subject="", sender="Bob <bob@example.com>")

    record = message_to_ingested(
        message,
        account=account,
        body=extract_body(message["payload"]),
        ai_summary="Bob says hi.",
        category_id="c1",
    )

    assert record.id == "m1"
    assert record.account_id == "acc1"
    assert record.owner_id == "u1"
    assert record.subject == "No Subject"
    assert record.sender == "Bob <bob@example.com>"
    assert record.clean_text_body == "Hi"
    assert record.is_read is False
    assert record.thread_id == "thread-m1"
    assert record.received_at == datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
