"""Configuration management for Inbox Organizer.

This module handles application configuration using Pydantic settings.
Configuration can be loaded from environment variables or .env files.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with
    the INBOX_ORGANIZER_ prefix (e.g., INBOX_ORGANIZER_OLLAMA_HOST).
    """

    model_config = SettingsConfigDict(
        env_prefix="INBOX_ORGANIZER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Gmail Configuration
    gmail_api_base: str = Field(
        default="https://gmail.googleapis.com/gmail/v1",
        description="Base URL of the Gmail REST API",
    )
    google_token_url: str = Field(
        default="https://oauth2.googleapis.com/token",
        description="OAuth token endpoint used for the refresh-token grant",
    )
    google_client_id: str = Field(default="", description="OAuth client ID")
    google_client_secret: str = Field(default="", description="OAuth client secret")
    gmail_credentials_path: Path = Field(
        default=Path("credentials.json"),
        description="Path to the OAuth client secrets file used by `accounts connect`",
    )
    gmail_scope: str = Field(
        default="https://www.googleapis.com/auth/gmail.modify",
        description=(
            "OAuth scope requested when connecting an account. Archiving needs "
            "gmail.modify; gmail.readonly is enough if archiving always fails anyway."
        ),
    )
    gmail_max_results: int = Field(
        default=100,
        description="Page size (maxResults) used when listing messages; every page is followed",
    )
    sync_buffer_minutes: int = Field(
        default=5,
        description="Safety margin subtracted from last_sync_at when building the sync window",
    )
    http_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for Gmail and token endpoint requests in seconds",
    )

    # Ollama Configuration
    ollama_host: str = Field(
        default="http://localhost:11434",
        description="Ollama API host URL",
    )
    ollama_timeout: int = Field(
        default=60,
        description="Timeout for Ollama API requests in seconds",
    )
    summarization_model: str = Field(
        default="llama3.1:8b",
        description="Model used to summarize messages",
    )
    categorization_model: str = Field(
        default="llama3.1:8b",
        description="Model used to pick a category for a message",
    )
    unsubscribe_analysis_model: str = Field(
        default="llama3.3:70b",
        description="Model used to find unsubscribe links and analyze unsubscribe pages",
    )

    # Prompt budgets
    summary_body_chars: int = Field(default=2000, description="Body characters sent for summaries")
    categorization_body_chars: int = Field(
        default=1000, description="Body characters sent for categorization"
    )
    link_extraction_chars: int = Field(
        default=8000, description="Message characters sent for unsubscribe link extraction"
    )
    page_analysis_chars: int = Field(
        default=2000, description="Page text characters sent for unsubscribe page analysis"
    )

    # Browser Configuration
    navigation_timeout_ms: int = Field(
        default=30000,
        description="Timeout for browser navigation in milliseconds",
    )
    browser_action_timeout_ms: int = Field(
        default=5000,
        description="Timeout for a single click/fill/select on an unsubscribe page in milliseconds",
    )
    browser_headless: bool = Field(default=True, description="Run Chromium headless")

    # Local store
    database_path: Path = Field(
        default=Path("inbox_organizer.sqlite3"),
        description="Path to the local SQLite store used by the CLI",
    )

    # Application Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
