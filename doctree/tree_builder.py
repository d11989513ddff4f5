"""Assembles the in-memory file/directory tree for one run."""

from __future__ import annotations

import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List

from .hasher import fingerprint, fingerprint_of_children
from .logging import get_logger
from .models import NodeKind, TreeNode
from .walker import WalkEntry

_BINARY_SNIFF_BYTES = 8192


@dataclass
class BuildResult:
    tree: TreeNode
    warnings: List[str] = field(default_factory=list)


class TreeBuilder:
    """Builds a fingerprinted tree from walker entries.

    Inclusion is decided upstream; the builder only honours ``entry.include``.
    Files are read exactly once: the bytes give the fingerprint and the
    prompt excerpt kept on the node.
    """

    def __init__(self, *, max_file_bytes: int = 20_000) -> None:
        self.max_file_bytes = max_file_bytes
        self.logger = get_logger("tree")

    def build(self, root: Path, entries: Iterable[WalkEntry]) -> BuildResult:
        root = Path(root)
        tree = TreeNode(path="", kind=NodeKind.DIRECTORY)
        directories: Dict[str, TreeNode] = {"": tree}
        warnings: List[str] = []

        for entry in sorted(entries, key=lambda item: item.rel_path.split("/")):
            if not entry.include:
                continue
            parent_path = entry.rel_path.rsplit("/", 1)[0] if "/" in entry.rel_path else ""
            parent = directories.get(parent_path)
            if parent is None:
                # the parent directory itself was excluded
                continue
            if entry.is_dir:
                node = TreeNode(path=entry.rel_path, kind=NodeKind.DIRECTORY)
                directories[entry.rel_path] = node
                parent.children.append(node)
                continue
            node = self._build_file(root, entry.rel_path, warnings)
            if node is not None:
                parent.children.append(node)

        self._finalize(tree)
        self.logger.info(
            "Tree built with %d nodes (%d warnings)", sum(1 for _ in tree.walk()), len(warnings)
        )
        return BuildResult(tree=tree, warnings=warnings)

    def _build_file(self, root: Path, rel_path: str, warnings: List[str]) -> TreeNode | None:
        path = root / rel_path
        try:
            mode = path.stat().st_mode
            if not stat.S_ISREG(mode):
                warnings.append(f"Skipped {rel_path}: not a regular file")
                self.logger.warning("Skipping %s: not a regular file", rel_path)
                return None
            data = path.read_bytes()
        except OSError as exc:
            warnings.append(f"Skipped {rel_path}: {exc.strerror or exc}")
            self.logger.warning("Skipping unreadable file %s: %s", rel_path, exc)
            return None

        binary = b"\0" in data[:_BINARY_SNIFF_BYTES]
        content = None
        if not binary:
            content = data[: self.max_file_bytes].decode("utf-8", errors="replace")
        return TreeNode(
            path=rel_path,
            kind=NodeKind.FILE,
            fingerprint=fingerprint(data),
            content=content,
            binary=binary,
            size=len(data),
        )

    @classmethod
    def _finalize(cls, node: TreeNode) -> None:
        """Sort children by name and compute directory fingerprints post-order."""
        if not node.is_directory:
            return
        node.children.sort(key=lambda child: child.name)
        for child in node.children:
            cls._finalize(child)
        node.fingerprint = directory_fingerprint(node)


def directory_fingerprint(node: TreeNode) -> str:
    return fingerprint_of_children(
        (child.name, child.fingerprint)
        for child in node.children
        if child.fingerprint is not None
    )


__all__ = ["BuildResult", "TreeBuilder", "directory_fingerprint"]
