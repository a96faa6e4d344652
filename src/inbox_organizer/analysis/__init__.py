"""LLM-backed message enrichment: summaries and categories."""

from .categorizer import Categorizer
from .summarizer import Summarizer

__all__ = ["Categorizer", "Summarizer"]
