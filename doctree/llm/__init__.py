"""Compute step adapters for OpenAI-compatible endpoints."""

from .client import ComputeClient, ComputeRequest, RequestKind, SummaryClient
from .gateway import ComputeGateway
from .retry import RetryPolicy, next_delay
from .runner import LLMRunner

__all__ = [
    "ComputeClient",
    "ComputeGateway",
    "ComputeRequest",
    "LLMRunner",
    "RequestKind",
    "RetryPolicy",
    "SummaryClient",
    "next_delay",
]
