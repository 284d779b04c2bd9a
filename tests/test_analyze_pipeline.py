from __future__ import annotations

import shutil
from pathlib import Path
from typing import TYPE_CHECKING

import orjson
import pytest

from compilation import CompilationError
from diagnostics import RawDiagnostic, RenderPoint, SourceLocation
from graph import DependencyCycleError
from pipeline import analyze
from rules.config import load_config
from typecheck import (
    AnalysisResult,
    CheckerFatalError,
    CollectionResult,
    ContextObservation,
    ObservedVariable,
    RenderCall,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

FIXTURE_SITE = Path(__file__).parent / "fixtures" / "site"


def _copy_site_fixture(root: Path) -> Path:
    shutil.copytree(FIXTURE_SITE, root)
    return root.resolve()


class _FakeChecker:
    """Reports one render call and flags template lines by their text."""

    def __init__(self, root: Path, *, fatal: list[str] | None = None) -> None:
        self.views = root / "app" / "page.py"
        self.fatal = fatal or []
        self.collected: list[Path] = []
        self.analyzed: dict[Path, str] = {}

    def collect(self, files: Sequence[Path]) -> CollectionResult:
        self.collected = list(files)
        return CollectionResult(
            render_calls=[RenderCall("child.html", self.views, 10)],
            observations=[
                ContextObservation(
                    "child.html",
                    self.views,
                    10,
                    (ObservedVariable("user", "builtins.str", ("builtins",)),),
                )
            ],
            not_file_specific_errors=self.fatal,
        )

    def analyze(self, files: Sequence[Path]) -> AnalysisResult:
        diagnostics: list[RawDiagnostic] = []
        for file in files:
            source = file.read_text(encoding="utf-8")
            self.analyzed[file] = source
            diagnostics.append(RawDiagnostic(file, 1, "Header problem", "misc"))
            for number, line in enumerate(source.splitlines(), start=1):
                if line.startswith("user: "):
                    diagnostics.append(RawDiagnostic(file, number, "Name declared twice", "no-redef"))
                if "page.title" in line:
                    diagnostics.append(
                        RawDiagnostic(file, number, 'Item "None" has no attribute "title"', "union-attr")
                    )
                if "user.name" in line:
                    diagnostics.append(
                        RawDiagnostic(file, number, '"str" has no attribute "name"', "attr-defined")
                    )
        return AnalysisResult(diagnostics=diagnostics)


def test_analyze_maps_findings_back_to_templates(tmp_path: Path) -> None:
    root = _copy_site_fixture(tmp_path / "site")
    templates = root / "templates"
    checker = _FakeChecker(root)

    outcome = analyze(root, load_config(root), checker=checker)

    assert outcome.issues == []
    assert outcome.templates == [
        templates / "base.html",
        templates / "child.html",
        templates / "partials" / "user.html",
    ]
    assert root / "app" / "page.py" in checker.collected
    assert len(checker.analyzed) == 3

    by_code = {diagnostic.identifier: diagnostic for diagnostic in outcome.diagnostics}
    assert sorted(by_code) == ["attr-defined", "union-attr"]
    assert len(outcome.diagnostics) == 2

    title = by_code["union-attr"]
    assert title.chain is not None
    assert title.chain.last == SourceLocation(templates / "child.html", 2)
    assert title.render_points == (
        RenderPoint(templates / "child.html", SourceLocation(root / "app" / "page.py", 10)),
    )

    user = by_code["attr-defined"]
    assert user.chain is not None
    assert user.chain.last == SourceLocation(templates / "partials" / "user.html", 1)
    assert user.render_points == ()

    child_source = next(source for file, source in checker.analyzed.items() if file.name.startswith("child_html"))
    assert "user: builtins.str\n" in child_source
    assert "import builtins\n" in child_source


def test_analyze_only_given_paths(tmp_path: Path) -> None:
    root = _copy_site_fixture(tmp_path / "site")
    templates = root / "templates"
    checker = _FakeChecker(root)

    outcome = analyze(root, load_config(root), paths=[templates / "partials"], checker=checker)

    assert outcome.templates == [templates / "partials" / "user.html"]
    assert [diagnostic.identifier for diagnostic in outcome.diagnostics] == ["attr-defined"]


def test_generated_baseline_suppresses_next_run(tmp_path: Path) -> None:
    root = _copy_site_fixture(tmp_path / "site")
    config = load_config(root)
    baseline_file = root / "jinjastan-baseline.json"

    outcome = analyze(root, config, checker=_FakeChecker(root), generate_baseline_file=baseline_file)

    assert outcome.baseline_file == baseline_file
    assert outcome.baseline_count == 2
    paths = [entry["template_path"] for entry in orjson.loads(baseline_file.read_bytes())["errors"]]
    assert paths == ["templates/child.html", "templates/partials/user.html"]

    rerun = analyze(root, config, checker=_FakeChecker(root))

    assert rerun.diagnostics == []


def test_analyze_skips_broken_templates(tmp_path: Path) -> None:
    root = _copy_site_fixture(tmp_path / "site")
    broken = root / "templates" / "broken.html"
    broken.write_text("fine\n{% if %}\n", encoding="utf-8")

    outcome = analyze(root, load_config(root), checker=_FakeChecker(root))

    assert broken not in outcome.templates
    assert len(outcome.templates) == 3
    assert [issue.stage for issue in outcome.issues] == ["dependencies", "compilation"]
    assert outcome.issues[1].template == broken

    with pytest.raises(CompilationError):
        analyze(root, load_config(root), checker=_FakeChecker(root), debug=True)


def test_analyze_rejects_dependency_cycles(tmp_path: Path) -> None:
    root = _copy_site_fixture(tmp_path / "site")
    (root / "templates" / "ping.html").write_text('{% include "pong.html" %}\n', encoding="utf-8")
    (root / "templates" / "pong.html").write_text('{% include "ping.html" %}\n', encoding="utf-8")

    with pytest.raises(DependencyCycleError):
        analyze(root, load_config(root), checker=_FakeChecker(root))


def test_analyze_aborts_on_checker_failure(tmp_path: Path) -> None:
    root = _copy_site_fixture(tmp_path / "site")

    with pytest.raises(CheckerFatalError) as excinfo:
        analyze(root, load_config(root), checker=_FakeChecker(root, fatal=["mypy crashed"]))

    assert excinfo.value.errors == ["mypy crashed"]


def test_analyze_without_templates(tmp_path: Path) -> None:
    outcome = analyze(tmp_path, load_config(tmp_path), checker=_FakeChecker(tmp_path))

    assert outcome.templates == []
    assert outcome.diagnostics == []
