"""Core data models shared across doctree components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterator, List, Optional, Tuple


class NodeKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass
class TreeNode:
    """One file or directory of the source tree for a single run."""

    path: str
    kind: NodeKind
    fingerprint: Optional[str] = None
    children: List["TreeNode"] = field(default_factory=list)
    summary: Optional[str] = None
    content: Optional[str] = None
    binary: bool = False
    size: int = 0

    @property
    def name(self) -> str:
        if not self.path:
            return ""
        return self.path.rsplit("/", 1)[-1]

    @property
    def is_directory(self) -> bool:
        return self.kind is NodeKind.DIRECTORY

    @property
    def display_path(self) -> str:
        if not self.path:
            return "."
        return f"{self.path}/" if self.is_directory else self.path

    def walk(self) -> Iterator["TreeNode"]:
        """Yield this node and its descendants, parents before children."""
        yield self
        for child in self.children:
            yield from child.walk()

    def find(self, path: str) -> Optional["TreeNode"]:
        for node in self.walk():
            if node.path == path:
                return node
        return None


@dataclass(frozen=True)
class CacheEntry:
    """Persisted summary for one fingerprint."""

    key: str
    node_path_hint: str
    kind: NodeKind
    summary_text: str
    generated_at: str

    def to_dict(self) -> Dict[str, object]:
        return {
            "key": self.key,
            "node_path_hint": self.node_path_hint,
            "kind": self.kind.value,
            "summary_text": self.summary_text,
            "generated_at": self.generated_at,
        }


@dataclass(frozen=True)
class MappingEntry:
    """Ties one README line to the cache keys it depends on."""

    line_number: int
    line_checksum: str
    cache_keys: FrozenSet[str]
    paths: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, object]:
        return {
            "line_number": self.line_number,
            "line_checksum": self.line_checksum,
            "cache_keys": sorted(self.cache_keys),
            "paths": list(self.paths),
        }


@dataclass
class CacheStats:
    entry_count: int
    total_size: int


@dataclass
class RunReport:
    """End-of-run accounting for the incremental summarizer."""

    reused: int = 0
    computed: int = 0
    deduplicated: int = 0
    skipped: int = 0
    failed: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return len(self.failed)


__all__ = [
    "CacheEntry",
    "CacheStats",
    "MappingEntry",
    "NodeKind",
    "RunReport",
    "TreeNode",
]
