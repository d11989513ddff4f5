"""Compute step: turns summarization requests into model prompts."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from .runner import LLMRunner

SYSTEM_PROMPT = (
    "You are a helpful assistant that generates concise, accurate documentation. "
    "Always respond in Markdown format. Focus on clarity and brevity."
)

NO_CHANGE = "NO_CHANGE"


class RequestKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"
    README_LINE = "readme_line"


@dataclass(frozen=True)
class ComputeRequest:
    """Input to the compute step.

    ``content`` is the file excerpt, the joined child summaries of a
    directory, or the prepared context for a README line.
    """

    kind: RequestKind
    content: str
    context_path: str


class ComputeClient(Protocol):
    def summarize(self, request: ComputeRequest) -> str:
        """Return the generated text for ``request``."""


class SummaryClient:
    """ComputeClient backed by an :class:`LLMRunner`."""

    def __init__(self, runner: LLMRunner) -> None:
        self.runner = runner

    def summarize(self, request: ComputeRequest) -> str:
        return self.runner.run(build_prompt(request), system=SYSTEM_PROMPT)

    def test_connection(self) -> str:
        return self.runner.run(
            "Respond with exactly: 'Connection test successful'", system=SYSTEM_PROMPT
        )


def build_prompt(request: ComputeRequest) -> str:
    if request.kind is RequestKind.FILE:
        return (
            "Summarize this source file for project documentation. Describe its purpose, "
            "the main functionality it provides, notable APIs or configuration, and how it "
            "fits into the project. Keep it to a short paragraph.\n\n"
            f"File: {request.context_path}\n\n"
            f"```\n{request.content}\n```"
        )
    if request.kind is RequestKind.DIRECTORY:
        name = request.context_path or "project root"
        return (
            f"Based on the following descriptions of the entries in the '{name}' directory, "
            "summarize this directory's role in the project: what it provides, its main "
            "components and how they fit together. Keep it to a short paragraph.\n\n"
            f"Component descriptions:\n{request.content}"
        )
    return (
        f"{request.content}\n\n"
        "If this line needs updating based on the current code, reply with the corrected "
        f"line only. If the line is still accurate, reply with exactly '{NO_CHANGE}'."
    )


__all__ = [
    "ComputeClient",
    "ComputeRequest",
    "NO_CHANGE",
    "RequestKind",
    "SummaryClient",
    "SYSTEM_PROMPT",
    "build_prompt",
]
