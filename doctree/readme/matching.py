"""Maps README lines to the tree nodes they talk about."""

from __future__ import annotations

from collections import defaultdict
import re
from typing import Dict, Iterable, List, Set

from ..models import MappingEntry, TreeNode

_TOKEN_PATTERN = re.compile(r"[A-Za-z0-9_][A-Za-z0-9_.:/-]*")
_IDENTIFIER_PATTERN = re.compile(
    r"`([^`\s]+)`"
    r"|\b([A-Za-z][A-Za-z0-9]*(?:_[A-Za-z0-9]+)+)\b"
    r"|\b([a-z]+[A-Z][A-Za-z0-9]*)\b"
    r"|\b([A-Z][a-z0-9]+[A-Z][A-Za-z0-9]*)\b"
    r"|\b([A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)+)\b"
)
_MIN_IDENTIFIER_LENGTH = 4
_MIN_STEM_LENGTH = 4
_STOPWORDS = {
    "about",
    "also",
    "config",
    "docs",
    "example",
    "examples",
    "index",
    "init",
    "main",
    "readme",
    "setup",
    "test",
    "tests",
    "that",
    "this",
    "with",
}
_FENCE_PREFIXES = ("```", "~~~")
_RULE_CHARACTERS = {"-", "*", "_", "="}


def is_content_line(line: str) -> bool:
    """Return True for README lines that can describe code.

    Blank lines, headings, code fences, horizontal rules and HTML comments
    never enter the mapping.
    """
    stripped = line.strip()
    if not stripped:
        return False
    if stripped.startswith("#"):
        return False
    if stripped.startswith(_FENCE_PREFIXES):
        return False
    if stripped.startswith("<!--"):
        return False
    compact = stripped.replace(" ", "")
    if len(compact) >= 3 and len(set(compact)) == 1 and compact[0] in _RULE_CHARACTERS:
        return False
    return True


def extract_identifiers(text: str) -> Set[str]:
    """Identifier-like substrings: snake_case, camelCase, dotted or back-ticked names."""
    identifiers: Set[str] = set()
    for match in _IDENTIFIER_PATTERN.finditer(text):
        value = next(group for group in match.groups() if group)
        value = value.strip("()[]{}<>.,:;!'\"")
        if len(value) < _MIN_IDENTIFIER_LENGTH:
            continue
        if value.lower() in _STOPWORDS:
            continue
        identifiers.add(value)
    return identifiers


def _line_tokens(line: str) -> Set[str]:
    tokens: Set[str] = set()
    for match in _TOKEN_PATTERN.finditer(line):
        raw = match.group(0).rstrip(".:,;-")
        if raw:
            tokens.add(raw)
    return tokens


class NodeIndex:
    """Lookup tables over the current tree.

    A mapped line is current while each of its paths still exists with the
    fingerprint it was mapped to. Path tokens cover every node but the root;
    identifiers come from the summaries of file nodes, so a line naming a
    function maps to the file that defines it rather than to every enclosing
    directory.
    """

    def __init__(self, tree: TreeNode) -> None:
        self.root = tree
        self.by_path: Dict[str, TreeNode] = {}
        self.fingerprints: Set[str] = set()
        self._path_tokens: Dict[str, Set[str]] = defaultdict(set)
        self._identifiers: Dict[str, Set[str]] = defaultdict(set)
        for node in tree.walk():
            self.by_path[node.path] = node
            if node.fingerprint is not None:
                self.fingerprints.add(node.fingerprint)
            if not node.path:
                continue
            for token in self._tokens_for(node):
                self._path_tokens[token].add(node.path)
            if not node.is_directory and node.summary:
                for identifier in extract_identifiers(node.summary):
                    self._identifiers[identifier].add(node.path)

    @staticmethod
    def _tokens_for(node: TreeNode) -> Iterable[str]:
        yield node.path
        if node.is_directory:
            yield f"{node.path}/"
            yield f"{node.name}/"
            return
        yield node.name
        stem = node.name.rsplit(".", 1)[0]
        if stem != node.name and len(stem) >= _MIN_STEM_LENGTH and stem.lower() not in _STOPWORDS:
            yield stem

    def match(self, line: str) -> List[TreeNode]:
        """Nodes referenced by ``line``, ordered by path."""
        paths: Set[str] = set()
        for token in _line_tokens(line):
            paths.update(self._path_tokens.get(token, ()))
        for identifier in extract_identifiers(line):
            paths.update(self._identifiers.get(identifier, ()))
        nodes = [self.by_path[path] for path in sorted(paths)]
        return [node for node in nodes if node.fingerprint is not None]

    def current_keys(self, paths: Iterable[str]) -> Set[str]:
        """Fingerprints the nodes at ``paths`` have now; missing paths add nothing."""
        keys: Set[str] = set()
        for path in paths:
            node = self.by_path.get(path)
            if node is not None and node.fingerprint is not None:
                keys.add(node.fingerprint)
        return keys

    def is_current(self, entry: MappingEntry) -> bool:
        """True while every mapped path still exists with the fingerprint it was mapped to.

        Entries written without paths can only be checked against the tree as
        a whole.
        """
        if not entry.paths:
            return all(key in self.fingerprints for key in entry.cache_keys)
        current: Set[str] = set()
        for path in entry.paths:
            node = self.by_path.get(path)
            if node is None or node.fingerprint is None or node.fingerprint not in entry.cache_keys:
                return False
            current.add(node.fingerprint)
        return current == set(entry.cache_keys)


__all__ = ["NodeIndex", "extract_identifiers", "is_content_line"]
