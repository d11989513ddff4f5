"""Persisted README line → cache key mapping."""

from __future__ import annotations

import json
from pathlib import Path
from typing import List, Sequence

from ..logging import get_logger
from ..models import MappingEntry
from .atomic import atomic_write_text

_MAPPING_VERSION = 1
MAPPING_FILENAME = "readme_mapping.json"


class MappingStore:
    """Loads and saves the ordered list of README mapping entries."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.logger = get_logger("mapping")

    def load(self) -> List[MappingEntry]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return []
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            self.logger.warning("Ignoring unreadable README mapping %s: %s", self.path, exc)
            return []
        if not isinstance(data, dict) or data.get("version") != _MAPPING_VERSION:
            self.logger.warning("Ignoring README mapping with unsupported format")
            return []
        entries = data.get("entries")
        if not isinstance(entries, list):
            return []

        loaded: List[MappingEntry] = []
        for raw in entries:
            entry = _entry_from_dict(raw)
            if entry is not None:
                loaded.append(entry)
        loaded.sort(key=lambda item: item.line_number)
        return loaded

    def save(self, entries: Sequence[MappingEntry], *, readme: str) -> None:
        payload = {
            "version": _MAPPING_VERSION,
            "readme": readme,
            "entries": [entry.to_dict() for entry in sorted(entries, key=lambda e: e.line_number)],
        }
        atomic_write_text(self.path, json.dumps(payload, indent=2))
        self.logger.debug("Saved %d README mapping entries", len(entries))


def _entry_from_dict(raw: object) -> MappingEntry | None:
    if not isinstance(raw, dict):
        return None
    line_number = raw.get("line_number")
    checksum = raw.get("line_checksum")
    keys = raw.get("cache_keys")
    paths = raw.get("paths", [])
    if isinstance(line_number, bool) or not isinstance(line_number, int) or line_number < 1:
        return None
    if not isinstance(checksum, str) or not isinstance(keys, list):
        return None
    if not isinstance(paths, list):
        paths = []
    return MappingEntry(
        line_number=line_number,
        line_checksum=checksum,
        cache_keys=frozenset(key for key in keys if isinstance(key, str)),
        paths=tuple(path for path in paths if isinstance(path, str)),
    )


__all__ = ["MAPPING_FILENAME", "MappingStore"]
