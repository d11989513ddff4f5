"""Error taxonomy shared across doctree components."""

from __future__ import annotations


class DocTreeError(Exception):
    """Base class for doctree failures."""


class ConfigError(DocTreeError):
    """Raised when the configuration cannot be loaded or is incomplete."""


class ComputeError(DocTreeError):
    """The compute step failed for one node; retrying will not help."""


class TransientComputeError(ComputeError):
    """Network, timeout or overload failure that is worth retrying."""


class FatalComputeError(ComputeError):
    """Failure that affects every request (e.g. bad credentials); aborts the run."""


class CacheCorruption(DocTreeError):
    """A persisted cache record could not be parsed."""

    def __init__(self, path: object, detail: str) -> None:
        super().__init__(f"Corrupt cache record {path}: {detail}")
        self.path = path
        self.detail = detail


class ReadmeError(DocTreeError):
    """The README exists but cannot be read as text."""


class MappingChecksumMismatch(DocTreeError):
    """A README mapping entry no longer matches the line it was built for."""

    def __init__(self, line_number: int) -> None:
        super().__init__(f"README line {line_number} changed since it was mapped")
        self.line_number = line_number


__all__ = [
    "CacheCorruption",
    "ComputeError",
    "ConfigError",
    "DocTreeError",
    "FatalComputeError",
    "MappingChecksumMismatch",
    "ReadmeError",
    "TransientComputeError",
]
