"""Incremental Gmail ingestion and enrichment."""

from .archiver import Archiver
from .pipeline import IngestionOrchestrator

__all__ = ["Archiver", "IngestionOrchestrator"]
