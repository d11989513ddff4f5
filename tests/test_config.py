"""Tests for doctree.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from doctree.config import DocTreeConfig, LLMConfig, load_config
from doctree.errors import ConfigError


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path, environ={})

    assert isinstance(config, DocTreeConfig)
    assert config.root == tmp_path.resolve()
    assert config.llm == LLMConfig()
    assert config.summarizer.workers == 8
    assert config.summarizer.max_parallel_calls == 4
    assert config.readme.mode == "validate"
    assert config.cache_path == tmp_path.resolve() / ".doctree_cache"
    assert config.readme_path == tmp_path.resolve() / "README.md"
    assert config.exclude_paths == []


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    (tmp_path / ".doctree.yml").write_text(
        """
llm:
  base_url: "http://localhost:12434/engines/v1"
  api_key: "test-key"
  model: "llama3:8b-instruct"
  temperature: 0.15
  max_tokens: 256
  request_timeout: 90
summarizer:
  workers: 3
  max_parallel_calls: 2
  max_attempts: 5
  base_delay: 0.5
  max_delay: 10
  max_file_bytes: 4096
readme:
  mode: Generate
  path: docs/README.md
cache:
  dir: .summaries
exclude_paths:
  - "sandbox/"
  - "*.lock"
log_level: debug
""",
        encoding="utf-8",
    )

    config = load_config(tmp_path, environ={})

    assert config.llm.base_url == "http://localhost:12434/engines/v1"
    assert config.llm.api_key == "test-key"
    assert config.llm.model == "llama3:8b-instruct"
    assert config.llm.temperature == pytest.approx(0.15)
    assert config.llm.max_tokens == 256
    assert config.llm.request_timeout == pytest.approx(90.0)
    assert config.summarizer.workers == 3
    assert config.summarizer.max_parallel_calls == 2
    assert config.summarizer.max_attempts == 5
    assert config.summarizer.base_delay == pytest.approx(0.5)
    assert config.summarizer.max_delay == pytest.approx(10.0)
    assert config.summarizer.max_file_bytes == 4096
    assert config.readme.mode == "generate"
    assert config.readme_path == tmp_path.resolve() / "docs" / "README.md"
    assert config.cache_path == tmp_path.resolve() / ".summaries"
    assert config.exclude_paths == ["sandbox/", "*.lock"]
    assert config.log_level == "debug"


def test_environment_overrides_file(tmp_path: Path) -> None:
    (tmp_path / ".doctree.yml").write_text(
        "llm:\n  base_url: http://file\n  model: file-model\nreadme:\n  mode: validate\n",
        encoding="utf-8",
    )
    environ = {
        "OPENAI_BASE_URL": "http://env:8080/v1",
        "OPENAI_API_KEY": "env-key",
        "OPENAI_MODEL": "env-model",
        "DOCTREE_CACHE_DIR": ".other_cache",
        "LOG_LEVEL": "warning",
        "DOCTREE_README_MODE": "GENERATE",
    }

    config = load_config(tmp_path, environ=environ)

    assert config.llm.base_url == "http://env:8080/v1"
    assert config.llm.api_key == "env-key"
    assert config.llm.model == "env-model"
    assert config.cache.dir == ".other_cache"
    assert config.log_level == "warning"
    assert config.readme.mode == "generate"


def test_primary_environment_names_win(tmp_path: Path) -> None:
    config = load_config(
        tmp_path,
        environ={
            "OPENAI_API_BASE": "http://primary",
            "OPENAI_BASE_URL": "http://secondary",
            "OPENAI_MODEL_NAME": "primary-model",
            "OPENAI_MODEL": "secondary-model",
        },
    )

    assert config.llm.base_url == "http://primary"
    assert config.llm.model == "primary-model"


def test_dotenv_file_is_loaded(tmp_path: Path) -> None:
    (tmp_path / ".env").write_text(
        "OPENAI_API_BASE=http://dotenv:1234/v1\nOPENAI_MODEL_NAME=dotenv-model\n",
        encoding="utf-8",
    )

    config = load_config(tmp_path)

    assert config.llm.base_url == "http://dotenv:1234/v1"
    assert config.llm.model == "dotenv-model"
    config.validate()


def test_validate_requires_url_and_model(tmp_path: Path) -> None:
    config = load_config(tmp_path, environ={})
    with pytest.raises(ConfigError, match="OPENAI_API_BASE"):
        config.validate()

    config.llm.base_url = "localhost:8080"
    with pytest.raises(ConfigError, match="http"):
        config.validate()

    config.llm.base_url = "https://api.example.com/v1"
    with pytest.raises(ConfigError, match="OPENAI_MODEL_NAME"):
        config.validate()

    config.llm.model = "gpt-4o-mini"
    config.validate()


@pytest.mark.parametrize(
    "content",
    [
        "readme:\n  mode: rewrite\n",
        "summarizer:\n  workers: -1\n",
        "summarizer:\n  max_attempts: -2\n",
        "- just\n- a list\n",
        "llm: [unclosed\n",
    ],
)
def test_invalid_configuration_raises(tmp_path: Path, content: str) -> None:
    (tmp_path / ".doctree.yml").write_text(content, encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path, environ={})
