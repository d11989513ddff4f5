"""CLI entrypoints for doctree commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import README_MODES, load_config
from .errors import ComputeError, ConfigError, FatalComputeError, ReadmeError
from .logging import configure_logging
from .orchestrator import Orchestrator, RunOutcome


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the project root (defaults to current directory).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="doctree",
        description="Summarize a source tree bottom-up and keep its README in step with the code.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser(
        "init",
        help="Create the summary cache and add it to .gitignore.",
    )
    _add_verbose_option(init_parser, suppress_default=True)
    _add_path_argument(init_parser)

    run_parser = subparsers.add_parser(
        "run",
        help="Summarize changed files and cross-reference the README.",
    )
    _add_verbose_option(run_parser, suppress_default=True)
    _add_path_argument(run_parser)
    run_parser.add_argument(
        "--force",
        action="store_true",
        help="Ignore cached summaries and recompute every node.",
    )
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate the README only; write neither the README nor its mapping.",
    )
    run_parser.add_argument(
        "--mode",
        choices=README_MODES,
        default=None,
        help="README mode for this run (overrides readme.mode).",
    )

    info_parser = subparsers.add_parser(
        "info",
        help="Show configuration, cache statistics and README details.",
    )
    _add_verbose_option(info_parser, suppress_default=True)
    _add_path_argument(info_parser)

    test_parser = subparsers.add_parser(
        "test",
        help="Check configuration and the compute service connection.",
    )
    _add_verbose_option(test_parser, suppress_default=True)
    _add_path_argument(test_parser)

    clean_parser = subparsers.add_parser(
        "clean",
        help="Remove the summary cache.",
    )
    _add_verbose_option(clean_parser, suppress_default=True)
    _add_path_argument(clean_parser)

    return parser


def main(argv: list[str] | None = None, *, orchestrator: Orchestrator | None = None) -> None:
    """CLI entrypoint for doctree commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), level_name=_configured_log_level(args.path))

    orchestrator = orchestrator or Orchestrator()

    try:
        if args.command == "init":
            outcome = orchestrator.run_init(args.path)
            print(f"Cache initialized at {_relativize(outcome.cache_path)}")
            if outcome.gitignore_updated:
                print(f"Added {outcome.cache_path.name}/ to .gitignore")
        elif args.command == "run":
            result = orchestrator.run(
                args.path,
                force=bool(args.force),
                dry_run=bool(args.dry_run),
                mode=args.mode,
            )
            _print_run(result)
        elif args.command == "info":
            _print_info(orchestrator, args.path)
        elif args.command == "test":
            reply = orchestrator.test_connection(args.path)
            print("Configuration OK")
            print(f"Compute service reachable: {reply}")
        elif args.command == "clean":
            if orchestrator.clean(args.path):
                print("Cache cleared")
            else:
                print("No cache to clear")
        else:  # pragma: no cover - argparse enforces choices
            parser.exit(1, "Unknown command\n")
    except KeyboardInterrupt:
        parser.exit(130, "Interrupted; completed summaries stay cached.\n")
    except (ConfigError, ReadmeError) as exc:
        parser.exit(1, f"doctree {args.command} failed: {exc}\n")
    except FatalComputeError as exc:
        parser.exit(1, f"doctree {args.command} aborted: {exc}\n")
    except ComputeError as exc:
        parser.exit(1, f"doctree {args.command} failed: {exc}\n")
    except OSError as exc:
        parser.exit(1, f"doctree {args.command} failed: {exc}\nRun with --verbose for more details.\n")


def _print_run(result: RunOutcome) -> None:
    report = result.report
    print("Summary run complete:")
    print(f"  reused from cache: {report.reused}")
    print(f"  recomputed:        {report.computed}")
    print(f"  deduplicated:      {report.deduplicated}")
    print(f"  skipped:           {report.skipped}")
    print(f"  failed:            {report.failed_count}")
    for path in report.failed:
        print(f"    - {path}")
    for warning in report.warnings:
        print(f"  warning: {warning}")

    xref = result.crossref
    readme = _relativize(xref.readme_path)
    if not xref.exists:
        if xref.created:
            print(f"README created at {readme}")
        else:
            print(f"{readme} does not exist. Suggested content:")
            print(xref.suggested_readme or "")
        return

    if not xref.stale_lines:
        print(f"{readme}: no stale lines ({xref.mapped_lines} mapped)")
    else:
        print(f"{readme}: {len(xref.stale_lines)} stale line(s)")
        for stale in xref.stale_lines:
            marker = "updated" if stale.applied else stale.reason
            print(f"  line {stale.line_number} ({marker}): {stale.text.strip()}")
            for path, summary in stale.justifications:
                print(f"    {path}: {summary.strip().splitlines()[0] if summary.strip() else ''}")
            if stale.suggestion and not stale.applied:
                print(f"    suggestion: {stale.suggestion}")
    if result.dry_run:
        print("(dry-run: no README or mapping changes written)")


def _print_info(orchestrator: Orchestrator, path: str) -> None:
    info = orchestrator.info(path)
    config = info.config
    print(f"Project root:   {config.root}")
    print(f"Compute URL:    {config.llm.base_url or '(not set)'}")
    print(f"Model:          {config.llm.model or '(not set)'}")
    print(f"README mode:    {config.readme.mode}")
    print(f"Cache:          {_relativize(config.cache_path)}")
    print(f"  entries:      {info.cache_stats.entry_count}")
    print(f"  size:         {info.cache_stats.total_size} bytes")
    if info.readme_exists:
        print(f"README:         {config.readme.path} ({info.readme_size} bytes)")
        print(f"  sections:     {', '.join(info.readme_sections) or '(none)'}")
        print(f"  mapped lines: {info.mapped_lines}")
    else:
        print(f"README:         {config.readme.path} (missing)")


def _configured_log_level(path: str) -> str | None:
    root = Path(path).expanduser()
    if not root.is_dir():
        return None
    try:
        return load_config(root).log_level
    except ConfigError:
        return None


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
