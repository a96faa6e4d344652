"""Gmail REST access: token refresh, message listing and body parsing."""

from .auth import HttpTokenGrant, TokenGrant, TokenRefresher
from .client import GmailClient
from .parsing import extract_body, html_to_text

__all__ = [
    "GmailClient",
    "HttpTokenGrant",
    "TokenGrant",
    "TokenRefresher",
    "extract_body",
    "html_to_text",
]
