"""Custom exceptions for Inbox Organizer."""


class InboxOrganizerError(Exception):
    """Base exception for all Inbox Organizer errors."""


class ConfigurationError(InboxOrganizerError):
    """Exception raised for configuration related errors."""


class AuthenticationError(InboxOrganizerError):
    """Exception raised for authentication failures."""


class TokenRefreshError(AuthenticationError):
    """Exception raised when the refresh-token grant does not yield an access token."""


class GmailAPIError(InboxOrganizerError):
    """Exception raised for Gmail API related errors."""


class FetchError(GmailAPIError):
    """Exception raised when the message list call fails for an account."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class LLMConnectionError(InboxOrganizerError):
    """Exception raised when unable to reach the LLM provider."""


class LLMInferenceError(InboxOrganizerError):
    """Exception raised when the LLM provider returns an unusable response."""


class StoreError(InboxOrganizerError):
    """Exception raised when a store read or write fails."""


class BrowserAutomationError(InboxOrganizerError):
    """Exception raised when the headless browser cannot be driven."""
