"""Configuration loading for doctree (.doctree.yml + environment)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml
from dotenv import load_dotenv

from .errors import ConfigError

CONFIG_FILENAME = ".doctree.yml"
DEFAULT_CACHE_DIR = ".doctree_cache"
README_MODES = ("validate", "generate")


@dataclass
class LLMConfig:
    """Compute service settings."""

    base_url: Optional[str] = None
    api_key: str = "local"
    model: Optional[str] = None
    temperature: Optional[float] = 0.3
    max_tokens: Optional[int] = 1000
    request_timeout: Optional[float] = 60.0


@dataclass
class SummarizerConfig:
    """Worker pool, retry and prompt-size settings."""

    workers: int = 8
    max_parallel_calls: int = 4
    max_attempts: int = 4
    base_delay: float = 2.0
    max_delay: float = 30.0
    max_file_bytes: int = 20_000


@dataclass
class ReadmeConfig:
    mode: str = "validate"
    path: str = "README.md"


@dataclass
class CacheConfig:
    dir: str = DEFAULT_CACHE_DIR


@dataclass
class DocTreeConfig:
    """Effective settings for one project root."""

    root: Path
    llm: LLMConfig = field(default_factory=LLMConfig)
    summarizer: SummarizerConfig = field(default_factory=SummarizerConfig)
    readme: ReadmeConfig = field(default_factory=ReadmeConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    exclude_paths: List[str] = field(default_factory=list)
    log_level: str = "info"

    @property
    def cache_path(self) -> Path:
        return self.root / self.cache.dir

    @property
    def readme_path(self) -> Path:
        return self.root / self.readme.path

    def validate(self) -> None:
        """Check the settings needed to talk to the compute service."""
        if not self.llm.base_url:
            raise ConfigError(
                "OPENAI_API_BASE or OPENAI_BASE_URL (or llm.base_url) is required"
            )
        if not self.llm.base_url.startswith(("http://", "https://")):
            raise ConfigError("The compute base URL must be an http:// or https:// URL")
        if not self.llm.model:
            raise ConfigError(
                "OPENAI_MODEL_NAME or OPENAI_MODEL (or llm.model) is required"
            )
        if not self.cache.dir:
            raise ConfigError("Cache directory name cannot be empty")


def load_config(
    root: Path,
    *,
    environ: Mapping[str, str] | None = None,
    load_env_file: bool = True,
) -> DocTreeConfig:
    """Load ``.doctree.yml`` from ``root`` and apply environment overrides."""
    root = root.expanduser().resolve()
    if environ is None:
        if load_env_file:
            load_dotenv(root / ".env", override=False)
        environ = os.environ

    config = DocTreeConfig(root=root)
    config_file = root / CONFIG_FILENAME
    if config_file.exists():
        data = _read_config(config_file)
        _apply_file_settings(config, data)
    _apply_environment(config, environ)

    if config.readme.mode not in README_MODES:
        raise ConfigError(
            f"readme.mode must be one of {', '.join(README_MODES)}, got {config.readme.mode!r}"
        )
    if config.summarizer.workers < 1 or config.summarizer.max_parallel_calls < 1:
        raise ConfigError("summarizer.workers and summarizer.max_parallel_calls must be >= 1")
    if config.summarizer.max_attempts < 1:
        raise ConfigError("summarizer.max_attempts must be >= 1")
    return config


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return loaded


def _apply_file_settings(config: DocTreeConfig, data: Dict[str, Any]) -> None:
    llm_data = _as_dict(data.get("llm"))
    if llm_data:
        llm = config.llm
        llm.base_url = _as_str(llm_data.get("base_url")) or llm.base_url
        llm.api_key = _as_str(llm_data.get("api_key")) or llm.api_key
        llm.model = _as_str(llm_data.get("model")) or llm.model
        if "temperature" in llm_data:
            llm.temperature = _as_float(llm_data.get("temperature"))
        if "max_tokens" in llm_data:
            llm.max_tokens = _as_int(llm_data.get("max_tokens"))
        if "request_timeout" in llm_data:
            llm.request_timeout = _as_float(llm_data.get("request_timeout"))

    summarizer_data = _as_dict(data.get("summarizer"))
    if summarizer_data:
        summarizer = config.summarizer
        summarizer.workers = _as_int(summarizer_data.get("workers")) or summarizer.workers
        summarizer.max_parallel_calls = (
            _as_int(summarizer_data.get("max_parallel_calls")) or summarizer.max_parallel_calls
        )
        summarizer.max_attempts = (
            _as_int(summarizer_data.get("max_attempts")) or summarizer.max_attempts
        )
        base_delay = _as_float(summarizer_data.get("base_delay"))
        if base_delay is not None:
            summarizer.base_delay = base_delay
        max_delay = _as_float(summarizer_data.get("max_delay"))
        if max_delay is not None:
            summarizer.max_delay = max_delay
        summarizer.max_file_bytes = (
            _as_int(summarizer_data.get("max_file_bytes")) or summarizer.max_file_bytes
        )

    readme_data = _as_dict(data.get("readme"))
    if readme_data:
        config.readme.mode = (_as_str(readme_data.get("mode")) or config.readme.mode).lower()
        config.readme.path = _as_str(readme_data.get("path")) or config.readme.path

    cache_data = _as_dict(data.get("cache"))
    if cache_data:
        config.cache.dir = _as_str(cache_data.get("dir")) or config.cache.dir

    config.exclude_paths = _as_str_list(data.get("exclude_paths"))
    config.log_level = _as_str(data.get("log_level")) or config.log_level


def _apply_environment(config: DocTreeConfig, environ: Mapping[str, str]) -> None:
    base_url = _first_env_value(environ, ("OPENAI_API_BASE", "OPENAI_BASE_URL"))
    if base_url:
        config.llm.base_url = base_url
    api_key = _first_env_value(environ, ("OPENAI_API_KEY",))
    if api_key:
        config.llm.api_key = api_key
    model = _first_env_value(environ, ("OPENAI_MODEL_NAME", "OPENAI_MODEL"))
    if model:
        config.llm.model = model
    cache_dir = _first_env_value(environ, ("DOCTREE_CACHE_DIR",))
    if cache_dir:
        config.cache.dir = cache_dir
    log_level = _first_env_value(environ, ("DOCTREE_LOG_LEVEL", "LOG_LEVEL"))
    if log_level:
        config.log_level = log_level
    readme_mode = _first_env_value(environ, ("DOCTREE_README_MODE",))
    if readme_mode:
        config.readme.mode = readme_mode.strip().lower()


def _first_env_value(environ: Mapping[str, str], keys: Sequence[str]) -> str | None:
    for key in keys:
        value = environ.get(key)
        if value:
            return value
    return None


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "CacheConfig",
    "DocTreeConfig",
    "LLMConfig",
    "README_MODES",
    "ReadmeConfig",
    "SummarizerConfig",
    "load_config",
]
