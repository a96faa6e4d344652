"""Prompt builders for every LLM call site.

Each builder truncates its free-text inputs to a caller-supplied budget so
prompt size stays bounded regardless of message size.
"""

from __future__ import annotations

from inbox_organizer.models import Category
from inbox_organizer.utils import truncate

SUMMARY_SYSTEM = "You summarize emails for a busy reader. Answer with the summary only."

CATEGORY_SYSTEM = "You sort emails into the user's categories. Answer with one category name only."

LINK_SYSTEM = (
    "You are an expert at finding unsubscribe links in email content. "
    "Respond with a JSON array only."
)

PAGE_SYSTEM = (
    "You are an autonomous web agent that unsubscribes users from mailing lists. "
    "Respond with a single JSON object only."
)


def build_summary_prompt(*, subject: str, sender: str, body: str, body_chars: int) -> str:
    """Build the 1-2 sentence summary prompt."""

    return (
        "Summarize the following email in 1-2 sentences. Focus on the core message "
        "and any action the recipient needs to take.\n\n"
        f"Subject: {subject}\n"
        f"From: {sender}\n\n"
        f"Body:\n{truncate(body, body_chars)}\n\n"
        "Summary:"
    )


def build_category_prompt(
    *,
    subject: str,
    sender: str,
    body: str,
    categories: list[Category],
    body_chars: int,
) -> str:
    """Build the prompt asking for exactly one category name from `categories`."""

    category_list = "\n".join(f"- {c.name}: {c.description}" for c in categories)
    return (
        "Categorize this email using exactly one category from the list. "
        "Return ONLY the category name.\n\n"
        f"Available Categories:\n{category_list}\n\n"
        "Email:\n"
        f"Subject: {subject}\n"
        f"From: {sender}\n"
        f"Body: {truncate(body, body_chars)}\n\n"
        "Category:"
    )


def build_link_prompt(*, content: str, content_chars: int) -> str:
    """Build the prompt asking for unsubscribe links as a JSON array."""

    return (
        "Analyze this email content and extract all unsubscribe links. Look for:\n"
        '- Links whose text contains "unsubscribe", "opt out", "remove" or "stop emails"\n'
        "- Links in footers or at the end of the email\n"
        "- mailto: links for unsubscribing\n"
        "- Any other link that appears to be for unsubscribing\n\n"
        f"Email content:\n{truncate(content, content_chars)}\n\n"
        "Return a JSON array of objects with this format:\n"
        '[{"url": "the full URL", "text": "the link text or surrounding context", '
        '"method": "GET" or "POST"}]\n\n'
        "If no unsubscribe links are found, return an empty array."
    )


def build_page_prompt(*, url: str, page_text: str, page_chars: int) -> str:
    """Build the prompt classifying an unsubscribe landing page."""

    return (
        "You are helping to unsubscribe from an email list.\n\n"
        f"Page URL: {url}\n"
        f"Page text content:\n{truncate(page_text, page_chars)}\n\n"
        "Decide what the page needs:\n"
        "1. A simple confirmation that needs a button click?\n"
        "2. A form to fill in?\n"
        "3. Checkboxes or dropdowns to set?\n"
        "4. A CAPTCHA?\n"
        "5. Confirmation by email?\n"
        "6. Nothing, because the user is already unsubscribed?\n\n"
        "Prefer options that unsubscribe from all emails. Only fill fields that are required.\n\n"
        "Respond with a JSON object only, no backticks or prose:\n"
        "{\n"
        '  "action": "CLICK_BUTTON|FILL_FORM|EMAIL_CONFIRMATION|CAPTCHA_REQUIRED|ALREADY_UNSUBSCRIBED|ERROR",\n'
        '  "elements": [\n'
        '    {"type": "button|input|select|checkbox", "selector": "CSS selector", '
        '"action": "click|type|select", "value": "value if needed"}\n'
        "  ],\n"
        '  "confidence": 0.0,\n'
        '  "message": "what was found and what needs to be done"\n'
        "}"
    )
