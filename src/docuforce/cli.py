"""CLI entry point: ``docuforce --file src/lib.rs`` and ``docuforce --init``."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from docuforce import __version__
from docuforce.config import GRAMMAR_MODULES, Settings, language_for_path
from docuforce.constants import RoundOutcome
from docuforce.logger import ReviewLogger
from docuforce.logging_config import setup_logging
from docuforce.resilience.errors import DocuforceError
from docuforce.services.review_service import (
    FunctionVerdict,
    ReviewReport,
    init_store,
    run_review,
)


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"docuforce {__version__}")
        return

    if not args.init and args.file is None:
        parser.print_help()
        return

    try:
        settings = _load_settings(args)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    setup_logging("INFO" if args.verbose else settings.log_level)

    try:
        if args.init:
            db_path = asyncio.run(init_store(settings))
            print(f"Initialized cache: {db_path or settings.database_url}")
        if args.file is not None:
            _run_file(args, settings)
    except DocuforceError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="docuforce",
        description=(
            "Check that doc comments still describe the functions "
            "they document."
        ),
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )
    parser.add_argument(
        "--file",
        "-f",
        type=Path,
        default=None,
        help="Source file to review",
    )
    parser.add_argument(
        "--init",
        "-i",
        action="store_true",
        help="Create the cache directory and schema if absent",
    )
    parser.add_argument(
        "--language",
        "-l",
        choices=sorted(GRAMMAR_MODULES),
        default=None,
        help="Subject language (default: from file extension, else settings)",
    )
    parser.add_argument(
        "--query",
        "-q",
        type=Path,
        default=None,
        help="Structural query file replacing the bundled one",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output",
    )
    return parser


def _load_settings(args: argparse.Namespace) -> Settings:
    """Settings from env/.env, overridden by command-line flags."""
    overrides: dict[str, object] = {}
    language = args.language
    if language is None and args.file is not None:
        language = language_for_path(args.file)
    if language is not None:
        overrides["subject_language"] = language
    if args.query is not None:
        overrides["query_path"] = args.query
    return Settings(**overrides)  # type: ignore[arg-type]


def _run_file(args: argparse.Namespace, settings: Settings) -> None:
    """Execute a review of one source file and print the report."""
    source_path: Path = args.file.resolve()
    if not source_path.exists():
        print(f"Error: {source_path} does not exist", file=sys.stderr)
        sys.exit(1)

    review_logger = ReviewLogger(settings.log_dir)
    try:
        report = asyncio.run(
            run_review(source_path, settings, review_logger=review_logger)
        )
    finally:
        review_logger.close()

    _print_report(report, verbose=args.verbose)


def _print_report(report: ReviewReport, *, verbose: bool) -> None:
    print(f"Reviewed: {report.source_path}")
    for verdict in report.verdicts:
        for line in _format_verdict(verdict, verbose=verbose):
            print(line)

    summary = report.summary
    print(
        f"\nDone! {len(summary.results)} functions "
        f"({summary.cached} cached, {summary.reviewed} reviewed, "
        f"{summary.failed} failed) in {report.duration_ms:.0f}ms"
    )


def _format_verdict(
    verdict: FunctionVerdict, *, verbose: bool = False
) -> list[str]:
    """Render one function's outcome as report lines."""
    record, result, entry = verdict.record, verdict.result, verdict.entry
    where = (
        f"{record.position.row + 1}:{record.position.column + 1}"
        if record.documented
        else "undocumented"
    )
    header = f"  {record.name} ({where})"

    if result.outcome == RoundOutcome.FAILED or entry is None:
        lines = [f"{header}: FAILED"]
        if verbose and result.error:
            lines.append(f"    Error: {result.error}")
        return lines

    tag = " [cached]" if result.outcome == RoundOutcome.CACHED else ""
    lines = [f"{header}: confidence {entry.confidence:.2f}{tag}"]
    lines.extend(f"    error: {e}" for e in entry.errors)
    lines.extend(f"    warning: {w}" for w in entry.warnings)
    return lines


if __name__ == "__main__":
    main()
