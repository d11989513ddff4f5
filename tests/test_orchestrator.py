"""Tests for doctree.orchestrator."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from doctree.errors import ConfigError
from doctree.llm.client import RequestKind
from doctree.orchestrator import Orchestrator

from tests._fixtures.compute import FakeClient
from tests._fixtures.repo_builder import RepoBuilder


async def _no_sleep(delay: float) -> None:
    return None


def _project(repo_builder: RepoBuilder) -> Path:
    repo_builder.write(
        {
            "src/app.py": "print('app')\n",
            "src/util.py": "def helper():\n    return 1\n",
            "docs/guide.md": "Guide\n",
        }
    )
    return repo_builder.path()


def test_run_init_creates_cache_and_gitignore(repo_builder: RepoBuilder) -> None:
    root = _project(repo_builder)
    orchestrator = Orchestrator(client=FakeClient())

    outcome = orchestrator.run_init(str(root))

    assert outcome.cache_path == root.resolve() / ".doctree_cache"
    assert outcome.cache_path.is_dir()
    assert outcome.gitignore_updated is True
    assert (root / ".gitignore").read_text(encoding="utf-8") == ".doctree_cache/\n"

    again = orchestrator.run_init(str(root))
    assert again.gitignore_updated is False


def test_second_run_reuses_every_summary(repo_builder: RepoBuilder) -> None:
    root = _project(repo_builder)
    client = FakeClient()
    orchestrator = Orchestrator(client=client, sleep=_no_sleep)

    first = orchestrator.run(str(root))
    assert first.report.computed > 0
    assert first.report.failed == []
    assert first.root_summary is not None
    assert first.cache_stats.entry_count == first.report.computed
    assert first.crossref.exists is False
    assert first.crossref.suggested_readme is not None
    assert not (root / "README.md").exists()

    calls_before = len(client.calls)
    second = orchestrator.run(str(root))

    assert len(client.calls) == calls_before
    assert second.report.computed == 0
    assert second.report.reused == first.report.computed


def test_changed_file_recomputes_its_ancestors_only(repo_builder: RepoBuilder) -> None:
    root = _project(repo_builder)
    client = FakeClient()
    orchestrator = Orchestrator(client=client, sleep=_no_sleep)
    orchestrator.run(str(root))
    client.calls.clear()

    (root / "src" / "app.py").write_text("print('changed')\n", encoding="utf-8")
    orchestrator.run(str(root))

    assert client.paths_for(RequestKind.FILE) == ["src/app.py"]
    assert client.paths_for(RequestKind.DIRECTORY) == ["", "src"]


def test_generate_mode_creates_readme_and_mapping(repo_builder: RepoBuilder) -> None:
    root = _project(repo_builder)
    orchestrator = Orchestrator(client=FakeClient(), sleep=_no_sleep)

    outcome = orchestrator.run(str(root), mode="generate")

    readme = root / "README.md"
    assert outcome.crossref.created is True
    assert readme.exists()
    content = readme.read_text(encoding="utf-8")
    assert content.startswith(f"# {root.name}\n")
    assert "- `src/`:" in content
    mapping = json.loads((root / ".doctree_cache" / "readme_mapping.json").read_text(encoding="utf-8"))
    assert mapping["readme"] == "README.md"
    assert len(mapping["entries"]) == outcome.crossref.mapped_lines > 0


def test_dry_run_writes_neither_readme_nor_mapping(repo_builder: RepoBuilder) -> None:
    root = _project(repo_builder)
    orchestrator = Orchestrator(client=FakeClient(), sleep=_no_sleep)

    outcome = orchestrator.run(str(root), dry_run=True, mode="generate")

    assert outcome.dry_run is True
    assert outcome.crossref.mode == "validate"
    assert not (root / "README.md").exists()
    assert not (root / ".doctree_cache" / "readme_mapping.json").exists()
    assert outcome.cache_stats.entry_count > 0


def test_run_rejects_unknown_mode(repo_builder: RepoBuilder) -> None:
    root = _project(repo_builder)

    with pytest.raises(ConfigError):
        Orchestrator(client=FakeClient()).run(str(root), mode="rewrite")


def test_run_requires_compute_settings_without_client(repo_builder: RepoBuilder) -> None:
    root = _project(repo_builder)

    with pytest.raises(ConfigError, match="OPENAI_API_BASE"):
        Orchestrator().run(str(root))


def test_missing_root_raises_config_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="not a directory"):
        Orchestrator(client=FakeClient()).info(str(tmp_path / "absent"))


def test_info_reports_cache_and_readme(repo_builder: RepoBuilder) -> None:
    root = _project(repo_builder)
    orchestrator = Orchestrator(client=FakeClient(), sleep=_no_sleep)
    orchestrator.run(str(root), mode="generate")

    info = orchestrator.info(str(root))

    assert info.readme_exists is True
    assert info.readme_size > 0
    assert info.readme_sections[0] == root.name
    assert "Installation" in info.readme_sections
    assert info.cache_stats.entry_count > 0
    assert info.mapped_lines > 0


def test_test_connection_uses_client(repo_builder: RepoBuilder) -> None:
    root = _project(repo_builder)

    reply = Orchestrator(client=FakeClient()).test_connection(str(root))

    assert reply == "Connection test successful"


def test_clean_removes_cache(repo_builder: RepoBuilder) -> None:
    root = _project(repo_builder)
    orchestrator = Orchestrator(client=FakeClient(), sleep=_no_sleep)
    orchestrator.run(str(root))

    assert orchestrator.clean(str(root)) is True
    assert not (root / ".doctree_cache").exists()
    assert orchestrator.clean(str(root)) is False
