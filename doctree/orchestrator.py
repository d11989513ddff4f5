"""Pipeline orchestration for init/run/info/test/clean."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Tuple

from .config import README_MODES, DocTreeConfig, load_config
from .errors import ConfigError
from .llm.client import ComputeClient, SummaryClient
from .llm.gateway import ComputeGateway
from .llm.retry import RetryPolicy
from .llm.runner import LLMRunner
from .logging import get_logger
from .models import CacheStats, RunReport, TreeNode
from .readme.crossref import MODE_VALIDATE, CrossReferenceReport, ReadmeCrossReferencer
from .stores.mapping import MAPPING_FILENAME, MappingStore
from .stores.summary_cache import SummaryCache
from .summarizer import IncrementalSummarizer
from .tree_builder import TreeBuilder
from .walker import load_ignore_rules, walk


@dataclass
class InitOutcome:
    cache_path: Path
    gitignore_updated: bool


@dataclass
class RunOutcome:
    """Everything a run produced, for reporting."""

    tree: TreeNode
    report: RunReport
    crossref: CrossReferenceReport
    cache_stats: CacheStats
    dry_run: bool = False

    @property
    def root_summary(self) -> Optional[str]:
        return self.tree.summary


@dataclass
class ProjectInfo:
    config: DocTreeConfig
    cache_stats: CacheStats
    readme_exists: bool
    readme_size: int = 0
    readme_sections: List[str] = field(default_factory=list)
    mapped_lines: int = 0


class Orchestrator:
    """Wires configuration, stores, the summarizer and the README layer together.

    ``client`` replaces the HTTP compute client; when it is given the
    compute settings are not required.
    """

    def __init__(
        self,
        client: ComputeClient | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._sleep = sleep
        self.logger = get_logger("orchestrator")

    def run_init(self, path: str) -> InitOutcome:
        """Create the cache directory and register it in .gitignore."""
        config = self._load_config(path)
        cache = SummaryCache(config.cache_path)
        updated = cache.initialize()
        self.logger.info("Initialized cache at %s", config.cache_path)
        return InitOutcome(cache_path=config.cache_path, gitignore_updated=updated)

    def run(
        self,
        path: str,
        *,
        force: bool = False,
        dry_run: bool = False,
        mode: str | None = None,
    ) -> RunOutcome:
        """Summarize the project and cross-reference its README."""
        config = self._load_config(path)
        if mode is not None and mode not in README_MODES:
            raise ConfigError(f"Unknown README mode {mode!r}")
        readme_mode = MODE_VALIDATE if dry_run else (mode or config.readme.mode)
        client = self._resolve_client(config)

        cache = SummaryCache(config.cache_path)
        if not config.cache_path.exists():
            self.logger.info("Cache directory %s not found; initializing", config.cache_path)
            cache.initialize()

        self.logger.info("Scanning %s", config.root)
        rules = load_ignore_rules(config.root, config.exclude_paths)
        entries = walk(config.root, rules, reserved=(config.cache.dir, config.readme.path))
        build = TreeBuilder(max_file_bytes=config.summarizer.max_file_bytes).build(
            config.root, entries
        )

        gateway = ComputeGateway(
            client,
            max_parallel_calls=config.summarizer.max_parallel_calls,
            policy=RetryPolicy(
                max_attempts=config.summarizer.max_attempts,
                base_delay=config.summarizer.base_delay,
                max_delay=config.summarizer.max_delay,
            ),
            sleep=self._sleep,
        )
        summarizer = IncrementalSummarizer(
            cache,
            gateway,
            workers=config.summarizer.workers,
            force=force,
        )
        crossref = ReadmeCrossReferencer(
            cache,
            MappingStore(config.cache_path / MAPPING_FILENAME),
            gateway=gateway,
            readme_name=config.readme.path,
        )

        async def _pipeline() -> Tuple[RunReport, CrossReferenceReport]:
            report = await summarizer.summarize(build.tree)
            self.logger.info("Cross-referencing %s (%s mode)", config.readme.path, readme_mode)
            xref = await crossref.run(
                config.root, build.tree, mode=readme_mode, write=not dry_run
            )
            return report, xref

        report, xref = asyncio.run(_pipeline())
        report.warnings[:0] = build.warnings
        return RunOutcome(
            tree=build.tree,
            report=report,
            crossref=xref,
            cache_stats=cache.stats(),
            dry_run=dry_run,
        )

    def info(self, path: str) -> ProjectInfo:
        config = self._load_config(path)
        cache = SummaryCache(config.cache_path)
        info = ProjectInfo(
            config=config,
            cache_stats=cache.stats(),
            readme_exists=config.readme_path.exists(),
        )
        if info.readme_exists:
            content = config.readme_path.read_text(encoding="utf-8", errors="replace")
            info.readme_size = len(content.encode("utf-8"))
            info.readme_sections = _extract_sections(content)
        info.mapped_lines = len(MappingStore(config.cache_path / MAPPING_FILENAME).load())
        return info

    def test_connection(self, path: str) -> str:
        """Round-trip one request to the compute service."""
        config = self._load_config(path)
        client = self._resolve_client(config)
        tester = getattr(client, "test_connection", None)
        if tester is None:
            raise ConfigError("The configured compute client cannot be tested")
        return tester()

    def clean(self, path: str) -> bool:
        """Remove the cache directory. Returns False when there was nothing to remove."""
        config = self._load_config(path)
        if not config.cache_path.exists():
            return False
        SummaryCache(config.cache_path).invalidate_all()
        return True

    def _load_config(self, path: str) -> DocTreeConfig:
        root = Path(path).expanduser().resolve()
        if not root.is_dir():
            raise ConfigError(f"{root} is not a directory")
        config = load_config(root)
        self.logger.debug("Loaded configuration for %s", root)
        return config

    def _resolve_client(self, config: DocTreeConfig) -> ComputeClient:
        if self._client is not None:
            return self._client
        config.validate()
        base_url, model = config.llm.base_url, config.llm.model
        if base_url is None or model is None:
            raise ConfigError("Compute service URL and model are required")
        runner = LLMRunner(
            base_url=base_url,
            model=model,
            api_key=config.llm.api_key,
            temperature=config.llm.temperature,
            max_tokens=config.llm.max_tokens,
            request_timeout=config.llm.request_timeout,
        )
        return SummaryClient(runner)


def _extract_sections(content: str) -> List[str]:
    sections: List[str] = []
    for line in content.splitlines():
        stripped = line.strip()
        if stripped.startswith("#"):
            title = stripped.lstrip("#").strip()
            if title:
                sections.append(title)
    return sections


__all__ = ["InitOutcome", "Orchestrator", "ProjectInfo", "RunOutcome"]
