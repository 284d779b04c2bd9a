"""Command-line interface for jinjastan."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from compilation import CompilationError
from diagnostics import BaselineFormatError, InternalConsistencyError
from diagnostics.baseline import check_baseline_path
from discovery import UnableToCanonicalizeTemplate
from flattening import FlatteningError
from graph import DependencyCycleError
from pipeline import analyze
from rules.config import DEFAULT_BASELINE_FILENAME, ConfigError, load_config
from typecheck import CheckerFatalError
from utils import relative_posix

if TYPE_CHECKING:
    from diagnostics import ResolvedDiagnostic

EXIT_OK = 0
EXIT_DIAGNOSTICS = 1
EXIT_FATAL = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jinjastan")
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser(
        "analyze", aliases=["analyse"], help="Type-check templates"
    )
    analyze_parser.add_argument(
        "paths",
        nargs="*",
        help="Templates or directories to analyze (default: all templates)",
    )
    analyze_parser.add_argument(
        "--root",
        default=".",
        help="Project root (default: .)",
    )
    analyze_parser.add_argument(
        "--debug",
        action="store_true",
        help="Stop at the first template error and log debug output",
    )
    analyze_parser.add_argument(
        "-b",
        "--generate-baseline",
        nargs="?",
        const=DEFAULT_BASELINE_FILENAME,
        default=None,
        metavar="FILE",
        help=f"Write remaining errors to a baseline file (default: {DEFAULT_BASELINE_FILENAME})",
    )

    return parser


def _format_diagnostic(diagnostic: ResolvedDiagnostic, cwd: Path) -> list[str]:
    lines = [diagnostic.message]
    if diagnostic.tip is not None:
        lines.extend(f"  tip: {line.lstrip(' •')}" for line in diagnostic.tip.splitlines())
    if diagnostic.identifier is not None:
        lines.append(f"  identifier: {diagnostic.identifier}")
    if diagnostic.python_file is not None and diagnostic.python_line is not None:
        lines.append(f"  generated: {diagnostic.python_file}:{diagnostic.python_line}")
    if diagnostic.chain is not None:
        lines.extend(f"  template: {location.to_string(cwd)}" for location in diagnostic.chain)
    lines.extend(
        f"  rendered at: {relative_posix(point.location.file, cwd)}:{point.location.line}"
        for point in diagnostic.render_points
    )
    return lines


def _handle_analyze(
    root: Path,
    paths: list[str],
    *,
    debug: bool,
    baseline: str | None,
) -> int:
    baseline_file: Path | None = None
    try:
        if baseline is not None:
            baseline_file = Path(baseline).expanduser().resolve()
            check_baseline_path(baseline_file)
        config = load_config(root)
        outcome = analyze(
            root,
            config,
            paths=[Path(path).expanduser().resolve() for path in paths],
            debug=debug,
            generate_baseline_file=baseline_file,
        )
    except CheckerFatalError as exc:
        for error in exc.errors:
            sys.stderr.write(f"Error {error}\n")
        return EXIT_FATAL
    except (
        BaselineFormatError,
        ConfigError,
        DependencyCycleError,
        InternalConsistencyError,
        CompilationError,
        FlatteningError,
        UnableToCanonicalizeTemplate,
    ) as exc:
        sys.stderr.write(f"error: {exc}\n")
        return EXIT_FATAL

    for issue in outcome.issues:
        sys.stderr.write(f"warning: {issue}\n")

    if baseline_file is not None:
        return EXIT_OK

    cwd = Path.cwd()
    for diagnostic in outcome.diagnostics:
        sys.stderr.write("\n".join(_format_diagnostic(diagnostic, cwd)) + "\n\n")

    if outcome.diagnostics:
        sys.stdout.write(f"Found {len(outcome.diagnostics)} errors\n")
        return EXIT_DIAGNOSTICS

    sys.stdout.write("No errors found\n")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(message)s",
        stream=sys.stderr,
    )

    root = Path(args.root).expanduser().resolve()

    if args.command in ("analyze", "analyse"):
        return _handle_analyze(
            root,
            args.paths,
            debug=args.debug,
            baseline=args.generate_baseline,
        )

    raise AssertionError


if __name__ == "__main__":
    raise SystemExit(main())
