"""Tests for prompt construction in the summary client."""

from __future__ import annotations

from doctree.llm.client import NO_CHANGE, SYSTEM_PROMPT, ComputeRequest, RequestKind, SummaryClient, build_prompt
from doctree.llm.runner import LLMRunner


def test_file_prompt_includes_path_and_content() -> None:
    prompt = build_prompt(ComputeRequest(RequestKind.FILE, "def main(): ...", "src/app.py"))

    assert "File: src/app.py" in prompt
    assert "def main(): ..." in prompt


def test_directory_prompt_uses_child_summaries() -> None:
    prompt = build_prompt(ComputeRequest(RequestKind.DIRECTORY, "**app.py**: Entry point.", "src"))

    assert "'src' directory" in prompt
    assert "**app.py**: Entry point." in prompt
    assert "'project root' directory" in build_prompt(ComputeRequest(RequestKind.DIRECTORY, "x", ""))


def test_readme_prompt_asks_for_no_change_marker() -> None:
    prompt = build_prompt(ComputeRequest(RequestKind.README_LINE, "Line 3: \"Run app.py\"", "README.md"))

    assert prompt.startswith("Line 3")
    assert NO_CHANGE in prompt


def test_summary_client_sends_system_prompt() -> None:
    seen = []

    def fake_runner(request):
        seen.append((request.system, request.prompt))
        return "ok"

    client = SummaryClient(LLMRunner(base_url="http://x", model="m", runner=fake_runner))

    assert client.summarize(ComputeRequest(RequestKind.FILE, "x", "a.py")) == "ok"
    assert client.test_connection() == "ok"
    assert seen[0][0] == SYSTEM_PROMPT
    assert "Connection test successful" in seen[1][1]
