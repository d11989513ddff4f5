"""Hierarchical, cache-backed project summaries and README maintenance."""

__version__ = "0.1.0"
