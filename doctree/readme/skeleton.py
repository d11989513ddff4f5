"""Renders the README skeleton used when a project has no README yet."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, List, Optional

from jinja2 import Environment, FileSystemLoader

from ..models import TreeNode

SKELETON_SECTIONS: tuple[str, ...] = ("installation", "usage", "contributing", "license")

SECTION_TITLES: Dict[str, str] = {
    "installation": "Installation",
    "usage": "Usage",
    "contributing": "Contributing",
    "license": "License",
}

_PLACEHOLDERS: Dict[str, str] = {
    "installation": "_Add installation instructions._",
    "usage": "_Add usage examples._",
    "contributing": "_Add contribution guidelines._",
    "license": "_Add license information._",
}

_TEMPLATE_NAME = "readme.md.j2"
_EXTRA_BLANK_LINES = re.compile(r"\n{3,}")


class ReadmeSkeleton:
    """Builds a first README from the root summary and top-level summaries."""

    def __init__(self, templates_dir: Path | None = None) -> None:
        self.templates_dir = templates_dir or Path(__file__).with_name("templates")
        self._env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, project_name: str, tree: TreeNode) -> str:
        overview = tree.summary.strip() if tree.summary else "_Add a project overview._"
        structure: List[Dict[str, str]] = []
        for child in tree.children:
            if not child.summary:
                continue
            structure.append({"path": child.display_path, "summary": one_line(child.summary)})
        sections = [
            {"name": name, "title": SECTION_TITLES[name], "placeholder": _PLACEHOLDERS[name]}
            for name in SKELETON_SECTIONS
        ]
        template = self._env.get_template(_TEMPLATE_NAME)
        rendered = template.render(
            project_name=project_name or "Project",
            overview=overview,
            structure=structure,
            sections=sections,
        )
        return _EXTRA_BLANK_LINES.sub("\n\n", rendered).strip() + "\n"


def one_line(text: str, *, limit: int = 200) -> str:
    """First meaningful line of a summary, without Markdown heading marks."""
    candidate: Optional[str] = None
    for line in text.splitlines():
        stripped = line.strip().lstrip("#").strip()
        if stripped:
            candidate = stripped
            break
    if candidate is None:
        return ""
    if len(candidate) > limit:
        candidate = candidate[: limit - 3].rstrip() + "..."
    return candidate


__all__ = ["ReadmeSkeleton", "SKELETON_SECTIONS", "SECTION_TITLES", "one_line"]
