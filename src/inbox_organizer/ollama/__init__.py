"""LLM access through a local Ollama instance."""

from .client import LLMResponse, OllamaClient, TextGenerator

__all__ = ["LLMResponse", "OllamaClient", "TextGenerator"]
