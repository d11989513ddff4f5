"""Bottom-up incremental summarization over a fingerprinted tree."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from .errors import ComputeError, FatalComputeError
from .llm.client import ComputeRequest, RequestKind
from .llm.gateway import ComputeGateway
from .logging import get_logger
from .models import CacheEntry, RunReport, TreeNode
from .stores.summary_cache import SummaryCache, utc_timestamp
from .tree_builder import directory_fingerprint


@dataclass
class _RunState:
    """Bookkeeping shared by the workers of a single run."""

    report: RunReport
    parents: Dict[str, TreeNode] = field(default_factory=dict)
    pending: Dict[str, int] = field(default_factory=dict)
    results: Dict[str, Optional[CacheEntry]] = field(default_factory=dict)
    in_flight: Dict[str, "asyncio.Future[Optional[CacheEntry]]"] = field(default_factory=dict)
    degraded: Set[str] = field(default_factory=set)


class IncrementalSummarizer:
    """Summarizes a tree children-first, reusing cached summaries by fingerprint.

    A pool of ``workers`` tasks pulls nodes from a ready queue. Leaves are
    ready at once; a directory is queued only after every child reached a
    terminal state, so it always sees its children's final summaries.

    Each unique fingerprint is resolved at most once per run: the first node
    to ask registers a future, later nodes with the same fingerprint await it.
    Node failures are recorded in the report and never block siblings; a
    :class:`FatalComputeError` aborts the whole run.
    """

    def __init__(
        self,
        store: SummaryCache,
        gateway: ComputeGateway,
        *,
        workers: int = 8,
        force: bool = False,
        persist: bool = True,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self.store = store
        self.gateway = gateway
        self.workers = workers
        self.force = force
        self.persist = persist
        self.logger = get_logger("summarizer")

    async def summarize(self, root: TreeNode) -> RunReport:
        state = _RunState(report=RunReport())
        queue: asyncio.Queue[Optional[TreeNode]] = asyncio.Queue()
        for node in root.walk():
            if node.is_directory:
                state.pending[node.path] = len(node.children)
                for child in node.children:
                    state.parents[child.path] = node
            if not node.children:
                queue.put_nowait(node)

        tasks = [asyncio.create_task(self._worker(queue, state)) for _ in range(self.workers)]
        try:
            await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        report = state.report
        self.logger.info(
            "Summarized tree: %d reused, %d computed, %d deduplicated, %d skipped, %d failed",
            report.reused,
            report.computed,
            report.deduplicated,
            report.skipped,
            report.failed_count,
        )
        return report

    async def _worker(self, queue: "asyncio.Queue[Optional[TreeNode]]", state: _RunState) -> None:
        while True:
            node = await queue.get()
            if node is None:
                return
            await self._process(node, state)
            parent = state.parents.get(node.path)
            if parent is None:
                # root finished, release every worker
                for _ in range(self.workers):
                    queue.put_nowait(None)
                continue
            state.pending[parent.path] -= 1
            if state.pending[parent.path] == 0:
                queue.put_nowait(parent)

    async def _process(self, node: TreeNode, state: _RunState) -> None:
        if node.is_directory:
            request = self._prepare_directory(node, state)
        else:
            request = self._prepare_file(node, state)
        key = node.fingerprint
        if request is None or key is None:
            return

        persist = node.path not in state.degraded
        entry = await self._resolve(node, key, request, state, persist=persist)
        if entry is None:
            state.report.failed.append(node.display_path)
            state.degraded.add(node.path)
            return
        node.summary = entry.summary_text

    def _prepare_file(self, node: TreeNode, state: _RunState) -> Optional[ComputeRequest]:
        if node.fingerprint is None:
            message = f"{node.display_path}: no fingerprint, skipped"
            state.report.warnings.append(message)
            self.logger.warning(message)
            state.report.skipped += 1
            return None
        if node.binary or node.size == 0 or not (node.content or "").strip():
            self.logger.debug("Skipping %s (binary or empty)", node.display_path)
            state.report.skipped += 1
            return None
        return ComputeRequest(kind=RequestKind.FILE, content=node.content or "", context_path=node.path)

    def _prepare_directory(self, node: TreeNode, state: _RunState) -> Optional[ComputeRequest]:
        for child in node.children:
            if child.fingerprint is None:
                message = f"{child.display_path}: no fingerprint, excluded from {node.display_path}"
                state.report.warnings.append(message)
                self.logger.warning(message)
            if child.path in state.degraded:
                state.degraded.add(node.path)
        node.fingerprint = directory_fingerprint(node)

        parts = [_format_child(child) for child in node.children if child.summary]
        if not parts:
            self.logger.debug("Skipping %s (no child summaries)", node.display_path)
            state.report.skipped += 1
            return None
        return ComputeRequest(
            kind=RequestKind.DIRECTORY,
            content="\n\n".join(parts),
            context_path=node.path,
        )

    async def _resolve(
        self,
        node: TreeNode,
        key: str,
        request: ComputeRequest,
        state: _RunState,
        *,
        persist: bool,
    ) -> Optional[CacheEntry]:
        if key in state.results:
            state.report.deduplicated += 1
            entry = state.results[key]
            self._mirror(entry, node, persist)
            return entry

        waiting = state.in_flight.get(key)
        if waiting is not None:
            state.report.deduplicated += 1
            entry = await waiting
            self._mirror(entry, node, persist)
            return entry

        future: "asyncio.Future[Optional[CacheEntry]]" = asyncio.get_running_loop().create_future()
        state.in_flight[key] = future
        entry = None
        try:
            entry = await self._lookup_or_compute(node, key, request, state, persist=persist)
        finally:
            state.results[key] = entry
            del state.in_flight[key]
            if not future.done():
                future.set_result(entry)
        return entry

    async def _lookup_or_compute(
        self,
        node: TreeNode,
        key: str,
        request: ComputeRequest,
        state: _RunState,
        *,
        persist: bool,
    ) -> Optional[CacheEntry]:
        if not self.force:
            cached = self.store.get(key)
            if cached is not None:
                state.report.reused += 1
                self._mirror(cached, node, persist)
                return cached

        try:
            text = await self.gateway.summarize(request)
        except FatalComputeError:
            raise
        except ComputeError as exc:
            self.logger.warning("Failed to summarize %s: %s", node.display_path, exc)
            return None

        state.report.computed += 1
        entry = CacheEntry(
            key=key,
            node_path_hint=node.path,
            kind=node.kind,
            summary_text=text.strip(),
            generated_at=utc_timestamp(),
        )
        if persist and self.persist:
            try:
                self.store.put(entry, overwrite=self.force)
            except OSError as exc:
                message = f"{node.display_path}: could not persist summary: {exc}"
                state.report.warnings.append(message)
                self.logger.warning(message)
        elif not persist:
            self.logger.debug("Not caching %s: subtree has failed nodes", node.display_path)
        return entry

    def _mirror(self, entry: Optional[CacheEntry], node: TreeNode, persist: bool) -> None:
        if entry is None or not persist or not self.persist:
            return
        self.store.mirror(entry, node.path)


def _format_child(child: TreeNode) -> str:
    if child.is_directory:
        return f"**{child.name}/** (directory): {child.summary}"
    return f"**{child.name}**: {child.summary}"


__all__ = ["IncrementalSummarizer"]
