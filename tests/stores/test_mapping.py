"""Tests for the README mapping store."""

from __future__ import annotations

import json
from pathlib import Path

from doctree.models import MappingEntry
from doctree.stores import MappingStore


def test_save_and_load_round_trip(tmp_path: Path) -> None:
    store = MappingStore(tmp_path / "readme_mapping.json")
    entries = [
        MappingEntry(line_number=7, line_checksum="c7", cache_keys=frozenset({"k2", "k1"}), paths=("src",)),
        MappingEntry(line_number=3, line_checksum="c3", cache_keys=frozenset({"k3"})),
    ]

    store.save(entries, readme="README.md")

    payload = json.loads((tmp_path / "readme_mapping.json").read_text(encoding="utf-8"))
    assert payload["version"] == 1
    assert payload["readme"] == "README.md"
    assert [item["line_number"] for item in payload["entries"]] == [3, 7]
    assert payload["entries"][1]["cache_keys"] == ["k1", "k2"]

    assert store.load() == sorted(entries, key=lambda entry: entry.line_number)


def test_missing_or_corrupt_mapping_loads_empty(tmp_path: Path) -> None:
    store = MappingStore(tmp_path / "readme_mapping.json")
    assert store.load() == []

    (tmp_path / "readme_mapping.json").write_text("[oops", encoding="utf-8")
    assert store.load() == []

    (tmp_path / "readme_mapping.json").write_text(json.dumps({"version": 99, "entries": []}), encoding="utf-8")
    assert store.load() == []


def test_malformed_entries_are_dropped(tmp_path: Path) -> None:
    path = tmp_path / "readme_mapping.json"
    path.write_text(
        json.dumps(
            {
                "version": 1,
                "readme": "README.md",
                "entries": [
                    {"line_number": 2, "line_checksum": "ok", "cache_keys": ["k"]},
                    {"line_number": 0, "line_checksum": "bad", "cache_keys": ["k"]},
                    {"line_number": 4, "line_checksum": "bad"},
                    "junk",
                ],
            }
        ),
        encoding="utf-8",
    )

    loaded = MappingStore(path).load()

    assert loaded == [MappingEntry(line_number=2, line_checksum="ok", cache_keys=frozenset({"k"}))]
