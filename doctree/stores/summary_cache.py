"""Content-addressable summary cache mirrored onto the source tree layout."""

from __future__ import annotations

from datetime import UTC, datetime
import json
import shutil
import threading
from pathlib import Path
from typing import Dict, Optional

from ..errors import CacheCorruption
from ..logging import get_logger
from ..models import CacheEntry, CacheStats, NodeKind
from .atomic import atomic_write_text

_CACHE_VERSION = 1
_OBJECTS_DIR = "objects"
_TREE_DIR = "tree"
_DIRECTORY_RECORD = "__dir__.json"


def utc_timestamp() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


class SummaryCache:
    """Stores summaries keyed by content fingerprint.

    ``objects/<key[:2]>/<key>.json`` holds one record per fingerprint and is
    what ``get`` reads. ``tree/`` mirrors the source layout (``<path>.json``
    for files, ``<dir>/__dir__.json`` for directories) so the cache can be
    inspected by hand; it plays no part in lookups.
    """

    def __init__(self, cache_dir: Path) -> None:
        self.cache_dir = Path(cache_dir)
        self.logger = get_logger("cache")
        self._lock = threading.Lock()
        self._key_locks: Dict[str, threading.Lock] = {}
        self.corrupt_records = 0

    @property
    def objects_dir(self) -> Path:
        return self.cache_dir / _OBJECTS_DIR

    @property
    def tree_dir(self) -> Path:
        return self.cache_dir / _TREE_DIR

    def initialize(self) -> bool:
        """Create the cache directory and list it in the project's .gitignore.

        Returns True when the .gitignore file was changed.
        """
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        gitignore = self.cache_dir.parent / ".gitignore"
        entry = f"{self.cache_dir.name}/"
        if gitignore.exists():
            content = gitignore.read_text(encoding="utf-8")
            existing = {line.strip() for line in content.splitlines()}
            if entry in existing or self.cache_dir.name in existing:
                self.logger.debug("Cache directory already listed in .gitignore")
                return False
            if content and not content.endswith("\n"):
                content += "\n"
            gitignore.write_text(f"{content}{entry}\n", encoding="utf-8")
        else:
            gitignore.write_text(f"{entry}\n", encoding="utf-8")
        self.logger.info("Added %s to .gitignore", entry)
        return True

    def get(self, key: str) -> Optional[CacheEntry]:
        path = self._object_path(key)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            self.corrupt_records += 1
            self.logger.warning("Ignoring unreadable cache record for %s: %s", key[:12], exc)
            return None
        try:
            entry = _entry_from_payload(json.loads(raw), path)
        except (json.JSONDecodeError, CacheCorruption) as exc:
            self.corrupt_records += 1
            self.logger.warning("Ignoring corrupt cache record for %s: %s", key[:12], exc)
            return None
        if entry.key != key:
            self.corrupt_records += 1
            self.logger.warning("Cache record %s is filed under the wrong key", path)
            return None
        return entry

    def put(self, entry: CacheEntry, *, overwrite: bool = False) -> bool:
        """Publish ``entry``. Existing records are kept unless ``overwrite``.

        Returns True when a record was written.
        """
        path = self._object_path(entry.key)
        with self._lock_for(entry.key):
            if not overwrite and self.get(entry.key) is not None:
                self.mirror(entry, entry.node_path_hint)
                return False
            atomic_write_text(path, _serialise(entry))
        self.mirror(entry, entry.node_path_hint)
        self.logger.debug("Stored summary %s for %s", entry.key[:12], entry.node_path_hint or ".")
        return True

    def mirror(self, entry: CacheEntry, path: str) -> None:
        """Write the inspection copy of ``entry`` at the mirrored location of ``path``."""
        target = self._mirror_path(path, entry.kind)
        try:
            current = target.read_text(encoding="utf-8")
        except FileNotFoundError:
            current = None
        except OSError:
            current = None
        payload = _serialise(entry)
        if current == payload:
            return
        try:
            atomic_write_text(target, payload)
        except OSError as exc:
            self.logger.debug("Could not mirror %s: %s", path, exc)

    def invalidate_all(self) -> None:
        """Remove every persisted record (explicit cache clear)."""
        with self._lock:
            if self.cache_dir.exists():
                shutil.rmtree(self.cache_dir)
                self.logger.info("Cleared cache directory %s", self.cache_dir)
            self._key_locks.clear()

    def stats(self) -> CacheStats:
        count = 0
        total = 0
        if self.objects_dir.exists():
            for record in self.objects_dir.glob("*/*.json"):
                try:
                    total += record.stat().st_size
                except OSError:
                    continue
                count += 1
        return CacheStats(entry_count=count, total_size=total)

    # ------------------------------------------------------------------
    # Internal helpers

    def _lock_for(self, key: str) -> threading.Lock:
        with self._lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[key] = lock
            return lock

    def _object_path(self, key: str) -> Path:
        return self.objects_dir / key[:2] / f"{key}.json"

    def _mirror_path(self, path: str, kind: NodeKind) -> Path:
        parts = [part for part in path.split("/") if part not in ("", ".", "..")]
        if kind is NodeKind.DIRECTORY:
            return self.tree_dir.joinpath(*parts, _DIRECTORY_RECORD)
        if not parts:
            return self.tree_dir / _DIRECTORY_RECORD
        return self.tree_dir.joinpath(*parts[:-1], f"{parts[-1]}.json")


def _serialise(entry: CacheEntry) -> str:
    payload = {"version": _CACHE_VERSION, **entry.to_dict()}
    return json.dumps(payload, indent=2, sort_keys=True)


def _entry_from_payload(payload: object, path: Path) -> CacheEntry:
    if not isinstance(payload, dict):
        raise CacheCorruption(path, "record is not an object")
    if payload.get("version") != _CACHE_VERSION:
        raise CacheCorruption(path, f"unsupported version {payload.get('version')!r}")
    key = payload.get("key")
    summary = payload.get("summary_text")
    hint = payload.get("node_path_hint", "")
    generated_at = payload.get("generated_at", "")
    kind_value = payload.get("kind")
    if not isinstance(key, str) or not isinstance(summary, str):
        raise CacheCorruption(path, "missing key or summary_text")
    if not isinstance(hint, str) or not isinstance(generated_at, str):
        raise CacheCorruption(path, "malformed metadata")
    try:
        kind = NodeKind(kind_value)
    except ValueError as exc:
        raise CacheCorruption(path, f"unknown node kind {kind_value!r}") from exc
    return CacheEntry(
        key=key,
        node_path_hint=hint,
        kind=kind,
        summary_text=summary,
        generated_at=generated_at,
    )


__all__ = ["SummaryCache", "utc_timestamp"]
