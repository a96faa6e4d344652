"""Ollama client implementation.

This module provides a client for interacting with Ollama LLM. Callers depend
on the `TextGenerator` protocol, so any provider exposing `generate_text`
can replace it.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx
import structlog
from pydantic import BaseModel

from inbox_organizer.config import Settings
from inbox_organizer.exceptions import LLMConnectionError, LLMInferenceError

logger = structlog.get_logger()


class LLMResponse(BaseModel):
    """Text produced by a single generation call."""

    text: str
    model: str


class TextGenerator(Protocol):
    """Single-shot text generation capability."""

    async def generate_text(
        self,
        prompt: str,
        model: str,
        max_tokens: int | None = None,
        system: str | None = None,
    ) -> LLMResponse: ...


class OllamaClient:
    """Ollama LLM client for AI inference.

    This client handles communication with the Ollama `/api/generate`
    endpoint.
    """

    def __init__(self, http: httpx.AsyncClient, settings: Settings | None = None) -> None:
        """Initialize Ollama client.

        Args:
            http: Shared async HTTP client.
            settings: Application settings. If None, uses default settings.
        """
        from inbox_organizer.config import get_settings

        self.settings = settings or get_settings()
        self._http = http
        self._host = self.settings.ollama_host.rstrip("/")
        logger.info("ollama_client_initialized", host=self._host)

    async def generate_text(
        self,
        prompt: str,
        model: str,
        max_tokens: int | None = None,
        system: str | None = None,
    ) -> LLMResponse:
        """Generate text using Ollama.

        Args:
            prompt: The prompt to send to the model.
            model: Model name to use.
            max_tokens: Upper bound on generated tokens.
            system: Optional system prompt.

        Returns:
            LLMResponse containing the generated text.

        Raises:
            LLMConnectionError: If unable to connect to Ollama.
            LLMInferenceError: If inference fails.
        """
        logger.debug("generating_text", model=model, prompt_length=len(prompt))

        payload: dict[str, Any] = {"model": model, "prompt": prompt, "stream": False}
        if system:
            payload["system"] = system
        if max_tokens is not None:
            payload["options"] = {"num_predict": max_tokens}

        try:
            response = await self._http.post(
                f"{self._host}/api/generate",
                json=payload,
                timeout=self.settings.ollama_timeout,
            )
        except httpx.HTTPError as exc:
            logger.warning("ollama_request_failed", model=model, error=str(exc))
            raise LLMConnectionError(str(exc)) from exc

        if not response.is_success:
            raise LLMInferenceError(
                f"Ollama returned {response.status_code}: {response.text[:200]}"
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise LLMInferenceError("Ollama returned a non-JSON body") from exc

        text = data.get("response") if isinstance(data, dict) else None
        if not isinstance(text, str):
            raise LLMInferenceError("Ollama response has no text")

        return LLMResponse(text=text.strip(), model=model)
