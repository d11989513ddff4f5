"""Persistent stores backing doctree runs."""

from .mapping import MappingStore
from .summary_cache import SummaryCache

__all__ = ["MappingStore", "SummaryCache"]
