"""The analysis pipeline.

Stages run in a fixed order, each consuming only the previous stages'
output::

    discover -> sort -> compile -> flatten -> collect -> inject -> analyze
             -> map -> filter -> collapse -> transform -> baseline

Per-template input errors are recorded as :class:`Issue` and the template is
skipped, unless ``debug`` is set, in which case the first one is raised.
Cycles, configuration errors, checker failures and broken invariants always
abort the run.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from compilation import CompilationError, CompilationResultCollection, TemplateCompiler
from diagnostics import (
    BaselineErrorFilter,
    ErrorCollapser,
    ErrorFilter,
    ErrorToSourceFileMapper,
    ErrorTransformer,
    build_render_point_table,
    dump_baseline,
    generate_baseline,
)
from discovery import (
    TemplateCanonicalizer,
    UnableToCanonicalizeTemplate,
    build_dependency_graph,
    build_environment,
)
from flattening import TemplateFlattener
from graph import sort_by_dependencies
from injection import ScopeInjector
from rules import build_ignore_rules, resolve_scratch_dir
from scan import find_files, find_given_files, find_python_files
from typecheck import CheckerFatalError, MypyRunner

if TYPE_CHECKING:
    from collections.abc import Sequence

    from diagnostics import ResolvedDiagnostic
    from rules import JinjastanConfig
    from typecheck import TypeChecker

logger = logging.getLogger(__name__)

STAGE_DIRECTORIES = ("compilation", "flattening", "scope-injection", "mypy")


@dataclass(frozen=True)
class Issue:
    """A recoverable per-item problem; the item was skipped."""

    stage: str
    template: Path | None
    message: str

    def __str__(self) -> str:
        if self.template is None:
            return f"[{self.stage}] {self.message}"
        return f"[{self.stage}] {self.template}: {self.message}"


@dataclass
class AnalysisOutcome:
    diagnostics: list[ResolvedDiagnostic] = field(default_factory=list)
    issues: list[Issue] = field(default_factory=list)
    templates: list[Path] = field(default_factory=list)
    baseline_file: Path | None = None
    baseline_count: int = 0


def prepare_scratch(root: Path, config: JinjastanConfig) -> dict[str, Path]:
    """Create empty per-stage scratch directories."""
    scratch = resolve_scratch_dir(root, config.scratch_dir)
    directories: dict[str, Path] = {}
    for name in STAGE_DIRECTORIES:
        directory = scratch / name
        shutil.rmtree(directory, ignore_errors=True)
        directory.mkdir(parents=True)
        directories[name] = directory
    return directories


def find_templates(root: Path, config: JinjastanConfig, paths: Sequence[Path]) -> list[Path]:
    suffixes = config.template_extensions
    if paths:
        return find_given_files(paths, suffixes=suffixes)

    directories = [root / path for path in config.template_paths]
    directories.extend(root / path for path in config.namespaces.values())
    found: dict[Path, None] = {}
    for directory in directories:
        for template in find_files(
            directory,
            suffixes=suffixes,
            root=root,
            scratch_dir=config.scratch_dir,
            include_patterns=config.include or None,
            exclude_patterns=config.exclude or None,
            nested_gitignore=config.nested_gitignore,
        ):
            found.setdefault(template.resolve())
    return list(found)


def analyze(
    root: Path,
    config: JinjastanConfig,
    *,
    paths: Sequence[Path] = (),
    checker: TypeChecker | None = None,
    debug: bool = False,
    generate_baseline_file: Path | None = None,
) -> AnalysisOutcome:
    """Analyze templates under ``root``.

    Args:
        root: Project root; mypy runs from here
        config: Loaded configuration
        paths: Templates or directories to analyze (default: every template
            on the configured search paths)
        checker: Type checker to use (default: mypy)
        debug: Raise the first per-template error instead of skipping
        generate_baseline_file: Write a baseline of the remaining
            diagnostics here instead of applying the existing baseline

    Raises:
        DependencyCycleError: If templates depend on each other in a cycle.
        CheckerFatalError: If the type checker fails as a whole.
        InternalConsistencyError: If a pipeline invariant is violated.
        ConfigError: If the scratch directory is invalid.
        BaselineFormatError: If the baseline cannot be read or written.
    """
    root = root.resolve()
    outcome = AnalysisOutcome()
    directories = prepare_scratch(root, config)
    checker = checker or MypyRunner(root, directories["mypy"], config.checker)

    environment = build_environment(root, config)
    canonicalizer = TemplateCanonicalizer(environment)

    entries: list[Path] = []
    for template in find_templates(root, config, paths):
        try:
            entries.append(canonicalizer.canonicalize_path(template))
        except UnableToCanonicalizeTemplate as exc:
            if debug:
                raise
            outcome.issues.append(Issue("discovery", template, str(exc)))

    if not entries:
        logger.warning("No templates found")
        return outcome

    logger.info("Finding dependencies for %d templates...", len(entries))
    graph = build_dependency_graph(entries, environment=environment, canonicalizer=canonicalizer)
    for warning in graph.warnings:
        outcome.issues.append(Issue("dependencies", None, warning))
    ordered = sort_by_dependencies(graph.edges, entries)
    dependency_count = len(ordered) - len(entries)
    logger.info(
        "Found %d %s...",
        dependency_count,
        "dependency" if dependency_count == 1 else "dependencies",
    )

    logger.info("Compiling %d templates...", len(ordered))
    compiler = TemplateCompiler(environment, canonicalizer)
    compiled = CompilationResultCollection()
    for template in ordered:
        try:
            compiled.add(compiler.compile(template, directories["compilation"]))
        except CompilationError as exc:
            if debug:
                raise
            logger.warning("Error compiling %s", exc)
            outcome.issues.append(Issue("compilation", template, exc.message))

    logger.info("Flattening %d templates...", len(compiled))
    flattened = TemplateFlattener().flatten(compiled, directories["flattening"], strict=debug)
    outcome.issues.extend(
        Issue("flattening", error.template, error.message) for error in flattened.errors
    )

    logger.info("Collecting scopes...")
    python_files = list(
        find_python_files(
            root,
            scratch_dir=config.scratch_dir,
            include_patterns=config.include or None,
            exclude_patterns=config.exclude or None,
            nested_gitignore=config.nested_gitignore,
        )
    )
    collection = checker.collect([*python_files, *(unit.python_file for unit in flattened)])
    if collection.not_file_specific_errors:
        raise CheckerFatalError(collection.not_file_specific_errors)

    render_points = build_render_point_table(
        collection.render_calls, canonicalizer=canonicalizer, flattened=flattened
    )

    logger.info("Injecting scope into templates...")
    injected = ScopeInjector(canonicalizer).inject(
        collection.observations, flattened, directories["scope-injection"]
    )

    outcome.templates = [template for template in entries if injected.get(template) is not None]
    units = [injected.units[template].python_file for template in outcome.templates]
    if not units:
        logger.warning("No templates left to analyze")
        return outcome

    logger.info("Analyzing %d templates...", len(units))
    analysis = checker.analyze(units)
    if analysis.not_file_specific_errors:
        raise CheckerFatalError(analysis.not_file_specific_errors)

    diagnostics = ErrorToSourceFileMapper(injected, render_points).map(analysis.diagnostics)
    diagnostics = ErrorFilter(build_ignore_rules(config)).filter(diagnostics)
    diagnostics = ErrorCollapser().collapse(diagnostics)
    diagnostics = ErrorTransformer().transform(diagnostics)

    if generate_baseline_file is not None:
        baseline_file = generate_baseline_file.resolve()
        entries_to_write = generate_baseline(diagnostics, baseline_file.parent)
        dump_baseline(entries_to_write, baseline_file)
        outcome.baseline_file = baseline_file
        outcome.baseline_count = sum(entry.count for entry in entries_to_write)
        outcome.diagnostics = diagnostics
        logger.info(
            "Baseline generated with %d %s in %s.",
            outcome.baseline_count,
            "error" if outcome.baseline_count == 1 else "errors",
            baseline_file,
        )
        return outcome

    if config.baseline is not None and (root / config.baseline).is_file():
        baseline = BaselineErrorFilter.from_file(root / config.baseline)
        diagnostics = baseline.filter(diagnostics)

    outcome.diagnostics = diagnostics
    return outcome


__all__ = ["AnalysisOutcome", "Issue", "analyze", "find_templates", "prepare_scratch"]
