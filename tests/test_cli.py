"""CLI parser and command output tests."""

from __future__ import annotations

import pytest

from doctree.cli import _build_parser, main
from doctree.orchestrator import Orchestrator

from tests._fixtures.compute import FakeClient
from tests._fixtures.repo_builder import RepoBuilder


async def _no_sleep(delay: float) -> None:
    return None


def test_cli_accepts_verbose_before_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--verbose", "run"])
    assert args.verbose is True
    assert args.command == "run"
    assert args.path == "."


def test_cli_accepts_verbose_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["info", "--verbose"])
    assert args.verbose is True
    assert args.command == "info"


def test_cli_accepts_run_flags() -> None:
    parser = _build_parser()
    args = parser.parse_args(["run", "project", "--force", "--dry-run", "--mode", "generate"])
    assert args.path == "project"
    assert args.force is True
    assert args.dry_run is True
    assert args.mode == "generate"


def test_cli_rejects_unknown_mode() -> None:
    parser = _build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["run", "--mode", "rewrite"])


def test_main_run_prints_counts(repo_builder: RepoBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    repo_builder.write({"src/app.py": "print('app')\n"})
    orchestrator = Orchestrator(client=FakeClient(), sleep=_no_sleep)

    main(["run", str(repo_builder.path()), "--mode", "generate"], orchestrator=orchestrator)

    out = capsys.readouterr().out
    assert "Summary run complete:" in out
    assert "recomputed:        4" in out
    assert "failed:            0" in out
    assert "README created at" in out


def test_main_run_lists_failed_paths(repo_builder: RepoBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    repo_builder.write({"src/app.py": "print('app')\n", "src/bad.py": "boom\n"})
    orchestrator = Orchestrator(client=FakeClient(failing=["src/bad.py"]), sleep=_no_sleep)

    main(["run", str(repo_builder.path())], orchestrator=orchestrator)

    out = capsys.readouterr().out
    assert "failed:            1" in out
    assert "    - src/bad.py" in out
    assert "does not exist. Suggested content:" in out


def test_main_init_and_clean(repo_builder: RepoBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    root = str(repo_builder.path())
    orchestrator = Orchestrator(client=FakeClient())

    main(["init", root], orchestrator=orchestrator)
    main(["clean", root], orchestrator=orchestrator)
    main(["clean", root], orchestrator=orchestrator)

    out = capsys.readouterr().out
    assert "Cache initialized at" in out
    assert "Added .doctree_cache/ to .gitignore" in out
    assert "Cache cleared" in out
    assert "No cache to clear" in out


def test_main_test_reports_missing_configuration(
    repo_builder: RepoBuilder, capsys: pytest.CaptureFixture[str]
) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["test", str(repo_builder.path())])

    assert excinfo.value.code == 1
    assert "doctree test failed" in capsys.readouterr().err


def test_main_test_with_client(repo_builder: RepoBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    main(["test", str(repo_builder.path())], orchestrator=Orchestrator(client=FakeClient()))

    out = capsys.readouterr().out
    assert "Configuration OK" in out
    assert "Connection test successful" in out


def test_main_run_reports_undecodable_readme(
    repo_builder: RepoBuilder, capsys: pytest.CaptureFixture[str]
) -> None:
    repo_builder.write({"src/app.py": "print('app')\n"})
    repo_builder.write_bytes("README.md", b"# Demo\n\xff broken\n")
    orchestrator = Orchestrator(client=FakeClient(), sleep=_no_sleep)

    with pytest.raises(SystemExit) as excinfo:
        main(["run", str(repo_builder.path())], orchestrator=orchestrator)

    assert excinfo.value.code == 1
    assert "not valid UTF-8" in capsys.readouterr().err
