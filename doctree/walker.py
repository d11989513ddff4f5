"""Ignore-aware directory walker feeding the tree builder."""

from __future__ import annotations

import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterable, Iterator, List, Sequence

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".tox",
    ".idea",
    "target",
    "build",
    "dist",
}

_EXCLUDED_FILES = {
    ".DS_Store",
    "Thumbs.db",
}

_VISIBLE_DOTFILES = {".gitignore"}


@dataclass(frozen=True)
class WalkEntry:
    """One filesystem entry and whether it belongs in the tree."""

    rel_path: str
    is_dir: bool
    include: bool


@dataclass
class IgnoreRule:
    """Represents an ignore rule parsed from .gitignore or .doctree.yml."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        if self.anchored or self.has_slash:
            if fnmatchcase(rel_path, self.pattern):
                return True
            if self.directory_only and rel_path.startswith(f"{self.pattern}/"):
                return True
            return False

        for part in rel_path.split("/"):
            if fnmatchcase(part, self.pattern):
                return True
        return False


def build_ignore_rule(pattern: str, negate: bool = False) -> IgnoreRule | None:
    pattern = pattern.strip()
    if not pattern:
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash="/" in pattern,
    )


def parse_gitignore(path: Path) -> List[IgnoreRule]:
    if not path.exists():
        return []

    rules: List[IgnoreRule] = []
    for raw_line in path.read_text(encoding="utf-8", errors="replace").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        negate = line.startswith("!")
        if negate:
            line = line[1:]
        rule = build_ignore_rule(line, negate=negate)
        if rule is not None:
            rules.append(rule)
    return rules


def load_ignore_rules(root: Path, extra_patterns: Iterable[str] = ()) -> List[IgnoreRule]:
    """Rules from the root ``.gitignore`` followed by configured exclusions."""
    rules = parse_gitignore(root / ".gitignore")
    for pattern in extra_patterns:
        rule = build_ignore_rule(pattern)
        if rule is not None:
            rules.append(rule)
    return rules


def should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


def _builtin_excluded(name: str, is_dir: bool) -> bool:
    if is_dir and name in _EXCLUDED_DIRS:
        return True
    if not is_dir and name in _EXCLUDED_FILES:
        return True
    return name.startswith(".") and name not in _VISIBLE_DOTFILES


def walk(
    root: Path,
    rules: Sequence[IgnoreRule] = (),
    *,
    reserved: Iterable[str] = (),
) -> Iterator[WalkEntry]:
    """Yield every entry under ``root`` with its inclusion decision.

    ``reserved`` names root-relative paths owned by doctree itself (the cache
    directory, the README) which never take part in the tree. Excluded
    directories are reported once and not descended into.
    """
    reserved_paths = {path.strip("/") for path in reserved if path}
    for dirpath, dirnames, filenames in os.walk(root):
        current_dir = Path(dirpath)
        rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""

        kept_dirs = []
        for name in sorted(dirnames):
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            if (current_dir / name).is_symlink():
                yield WalkEntry(rel_path, True, False)
                continue
            include = not (
                rel_path in reserved_paths
                or _builtin_excluded(name, True)
                or should_ignore(rel_path, True, rules)
            )
            yield WalkEntry(rel_path, True, include)
            if include:
                kept_dirs.append(name)
        dirnames[:] = kept_dirs

        for name in sorted(filenames):
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            include = not (
                rel_path in reserved_paths
                or _builtin_excluded(name, False)
                or should_ignore(rel_path, False, rules)
            )
            yield WalkEntry(rel_path, False, include)


__all__ = [
    "IgnoreRule",
    "WalkEntry",
    "build_ignore_rule",
    "load_ignore_rules",
    "parse_gitignore",
    "should_ignore",
    "walk",
]
