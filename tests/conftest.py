from __future__ import annotations

from pathlib import Path

import pytest

from tests._fixtures.compute import FakeClient
from tests._fixtures.repo_builder import RepoBuilder


@pytest.fixture
def repo_builder(tmp_path: Path) -> RepoBuilder:
    """Provide a reusable project builder rooted at the pytest tmp_path."""
    return RepoBuilder(tmp_path)


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "OPENAI_API_BASE",
        "OPENAI_BASE_URL",
        "OPENAI_API_KEY",
        "OPENAI_MODEL_NAME",
        "OPENAI_MODEL",
        "DOCTREE_CACHE_DIR",
        "DOCTREE_LOG_LEVEL",
        "LOG_LEVEL",
        "DOCTREE_README_MODE",
    ):
        # registered first so values a project .env loads are undone too
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
