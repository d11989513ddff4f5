"""README cross-referencing: line mapping, staleness and merging."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from ..errors import ComputeError, FatalComputeError, MappingChecksumMismatch, ReadmeError
from ..hasher import fingerprint_text
from ..llm.client import NO_CHANGE, ComputeRequest, RequestKind
from ..llm.gateway import ComputeGateway
from ..logging import get_logger
from ..models import MappingEntry, TreeNode
from ..stores.atomic import atomic_write_text
from ..stores.mapping import MappingStore
from ..stores.summary_cache import SummaryCache
from .matching import NodeIndex, is_content_line
from .skeleton import ReadmeSkeleton, one_line

MODE_VALIDATE = "validate"
MODE_GENERATE = "generate"


@dataclass
class StaleLine:
    """A README line whose mapped sources changed since it was last checked."""

    line_number: int
    text: str
    reason: str
    cache_keys: FrozenSet[str]
    justifications: List[Tuple[str, str]] = field(default_factory=list)
    suggestion: Optional[str] = None
    applied: bool = False


@dataclass
class CrossReferenceReport:
    readme_path: Path
    mode: str
    exists: bool
    stale_lines: List[StaleLine] = field(default_factory=list)
    mapped_lines: int = 0
    voided_entries: int = 0
    confirmed_lines: int = 0
    suggested_readme: Optional[str] = None
    created: bool = False
    written: bool = False


@dataclass
class _Analysis:
    lines: List[str]
    entries: List[MappingEntry]
    voided: int


class ReadmeCrossReferencer:
    """Keeps README lines tied to the cache keys that justify them.

    Every run re-analyzes the README against the current tree. In validate
    mode stale lines are reported with a suggested replacement and nothing is
    written; in generate mode stale lines are replaced in place and a missing
    README is created from the skeleton. The mapping is saved after every run
    unless ``write`` is False.
    """

    def __init__(
        self,
        store: SummaryCache,
        mapping_store: MappingStore,
        *,
        gateway: ComputeGateway | None = None,
        readme_name: str = "README.md",
        skeleton: ReadmeSkeleton | None = None,
    ) -> None:
        self.store = store
        self.mapping_store = mapping_store
        self.gateway = gateway
        self.readme_name = readme_name
        self.skeleton = skeleton or ReadmeSkeleton()
        self.logger = get_logger("readme")

    async def run(
        self,
        project_root: Path,
        tree: TreeNode,
        *,
        mode: str = MODE_VALIDATE,
        write: bool = True,
    ) -> CrossReferenceReport:
        if mode not in (MODE_VALIDATE, MODE_GENERATE):
            raise ValueError(f"Unknown README mode: {mode}")
        readme_path = Path(project_root) / self.readme_name
        index = NodeIndex(tree)
        if not readme_path.exists():
            return self._handle_missing(readme_path, project_root, tree, index, mode=mode, write=write)

        try:
            text = readme_path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise ReadmeError(f"{readme_path} is not valid UTF-8: {exc}") from exc
        analysis = self.analyze(text.splitlines(), self.mapping_store.load(), index)
        report = CrossReferenceReport(
            readme_path=readme_path,
            mode=mode,
            exists=True,
            voided_entries=analysis.voided,
        )

        entries = {entry.line_number: entry for entry in analysis.entries}
        for entry in analysis.entries:
            if index.is_current(entry):
                continue
            line = analysis.lines[entry.line_number - 1]
            stale = await self._inspect(entry, line, index)
            if stale is None:
                # the model confirmed the line; re-anchor it to the current keys
                report.confirmed_lines += 1
                refreshed = _match(entry.line_number, line, entry.line_checksum, index)
                if refreshed is None:
                    del entries[entry.line_number]
                else:
                    entries[entry.line_number] = refreshed
                continue
            report.stale_lines.append(stale)

        lines = list(analysis.lines)
        if mode == MODE_GENERATE:
            for stale in report.stale_lines:
                if stale.suggestion:
                    lines[stale.line_number - 1] = stale.suggestion
                    stale.applied = True

        final_entries = list(entries.values())
        if any(stale.applied for stale in report.stale_lines):
            if write:
                atomic_write_text(readme_path, _join_lines(lines, text))
                report.written = True
                self.logger.info(
                    "Updated %d stale line(s) in %s",
                    sum(1 for stale in report.stale_lines if stale.applied),
                    readme_path,
                )
            final_entries = self.analyze(lines, final_entries, index).entries

        report.mapped_lines = len(final_entries)
        if write:
            self.mapping_store.save(final_entries, readme=self.readme_name)
        return report

    def analyze(
        self,
        lines: Sequence[str],
        previous: Sequence[MappingEntry],
        index: NodeIndex,
    ) -> _Analysis:
        """Rebuild the line mapping for ``lines``.

        An old entry is reused when its checksum still matches: first at the
        same line number, then anywhere the same text moved to. Entries whose
        checksum no longer matches are void and the line is matched afresh.
        """
        by_line = {entry.line_number: entry for entry in previous}
        checksums: Dict[int, str] = {}
        reused: Dict[int, MappingEntry] = {}
        used: set[int] = set()
        voided = 0

        for number, line in enumerate(lines, start=1):
            if not is_content_line(line):
                continue
            checksum = fingerprint_text(line)
            checksums[number] = checksum
            old = by_line.get(number)
            if old is None:
                continue
            try:
                _verify(old, checksum)
            except MappingChecksumMismatch as exc:
                voided += 1
                self.logger.debug("%s", exc)
                continue
            reused[number] = old
            used.add(id(old))

        moved: Dict[str, List[MappingEntry]] = {}
        for entry in previous:
            if id(entry) not in used:
                moved.setdefault(entry.line_checksum, []).append(entry)

        entries: List[MappingEntry] = []
        for number, checksum in checksums.items():
            entry = reused.get(number)
            if entry is None and moved.get(checksum):
                entry = replace(moved[checksum].pop(0), line_number=number)
            if entry is None:
                entry = _match(number, lines[number - 1], checksum, index)
            if entry is not None:
                entries.append(entry)
        return _Analysis(lines=list(lines), entries=entries, voided=voided)

    async def _inspect(self, entry: MappingEntry, line: str, index: NodeIndex) -> Optional[StaleLine]:
        justifications: List[Tuple[str, str]] = []
        for path in entry.paths:
            node = index.by_path.get(path)
            if node is not None and node.summary:
                justifications.append((node.display_path, node.summary))

        if justifications:
            reason = "referenced sources changed"
        else:
            reason = "referenced sources no longer exist"
        stale = StaleLine(
            line_number=entry.line_number,
            text=line,
            reason=reason,
            cache_keys=entry.cache_keys,
            justifications=justifications,
        )
        if not justifications or self.gateway is None:
            return stale

        request = ComputeRequest(
            kind=RequestKind.README_LINE,
            content=self._suggestion_context(entry, line, justifications, index),
            context_path=self.readme_name,
        )
        try:
            reply = await self.gateway.summarize(request)
        except FatalComputeError:
            raise
        except ComputeError as exc:
            self.logger.warning("No suggestion for README line %d: %s", entry.line_number, exc)
            return stale

        suggestion = _clean_suggestion(reply)
        if not suggestion or suggestion == NO_CHANGE or suggestion == line.strip():
            return None
        stale.suggestion = suggestion
        return stale

    def _suggestion_context(
        self,
        entry: MappingEntry,
        line: str,
        justifications: Sequence[Tuple[str, str]],
        index: NodeIndex,
    ) -> str:
        parts = [
            f"The following line in {self.readme_name} may be outdated:",
            "",
            f'Line {entry.line_number}: "{line.strip()}"',
            "",
            "Current code summaries:",
        ]
        parts.extend(f"- {path}: {one_line(summary)}" for path, summary in justifications)

        previous: List[str] = []
        current = index.current_keys(entry.paths)
        for key in sorted(entry.cache_keys - current):
            cached = self.store.get(key)
            if cached is not None:
                previous.append(f"- {cached.node_path_hint or '.'}: {one_line(cached.summary_text)}")
        if previous:
            parts.extend(["", "Summaries when the line was last checked:", *previous])

        if index.root.summary:
            parts.extend(["", "Project context:", one_line(index.root.summary, limit=600)])
        return "\n".join(parts)

    def _handle_missing(
        self,
        readme_path: Path,
        project_root: Path,
        tree: TreeNode,
        index: NodeIndex,
        *,
        mode: str,
        write: bool,
    ) -> CrossReferenceReport:
        project_name = Path(project_root).resolve().name
        content = self.skeleton.render(project_name, tree)
        report = CrossReferenceReport(readme_path=readme_path, mode=mode, exists=False)
        if mode == MODE_VALIDATE or not write:
            report.suggested_readme = content
            if write:
                self.mapping_store.save([], readme=self.readme_name)
            return report

        atomic_write_text(readme_path, content)
        report.created = True
        report.written = True
        self.logger.info("Created %s from the project summary", readme_path)
        entries = self.analyze(content.splitlines(), [], index).entries
        report.mapped_lines = len(entries)
        self.mapping_store.save(entries, readme=self.readme_name)
        return report


def _verify(entry: MappingEntry, checksum: str) -> None:
    if entry.line_checksum != checksum:
        raise MappingChecksumMismatch(entry.line_number)


def _match(number: int, line: str, checksum: str, index: NodeIndex) -> Optional[MappingEntry]:
    nodes = index.match(line)
    if not nodes:
        return None
    return MappingEntry(
        line_number=number,
        line_checksum=checksum,
        cache_keys=frozenset(node.fingerprint for node in nodes if node.fingerprint),
        paths=tuple(node.path for node in nodes),
    )


def _clean_suggestion(reply: str) -> str:
    for line in reply.splitlines():
        stripped = line.strip()
        if stripped.startswith("```"):
            continue
        if stripped:
            if len(stripped) >= 2 and stripped[0] == stripped[-1] and stripped[0] in "\"'":
                stripped = stripped[1:-1].strip()
            return stripped
    return ""


def _join_lines(lines: Sequence[str], original: str) -> str:
    joined = "\n".join(lines)
    if original.endswith("\n"):
        joined += "\n"
    return joined


__all__ = [
    "CrossReferenceReport",
    "MODE_GENERATE",
    "MODE_VALIDATE",
    "ReadmeCrossReferencer",
    "StaleLine",
]
