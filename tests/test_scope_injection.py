from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from compilation import CompilationResultCollection, TemplateCompiler
from compilation.codegen import CONTEXT_END, CONTEXT_START
from discovery import TemplateCanonicalizer, build_environment
from flattening import FlatteningResultCollection, TemplateFlattener
from injection import ScopeInjector, union_annotation
from injection.scope_injector import group_observations, replace_context_section
from rules.config import JinjastanConfig
from typecheck.results import ContextObservation, ObservedVariable

FIXTURE_SITE = Path(__file__).parent / "fixtures" / "site"


def _copy_site_fixture(root: Path) -> Path:
    shutil.copytree(FIXTURE_SITE, root)
    return root.resolve()


def _flatten_site(root: Path, scratch: Path) -> tuple[TemplateCanonicalizer, FlatteningResultCollection]:
    environment = build_environment(root, JinjastanConfig())
    canonicalizer = TemplateCanonicalizer(environment)
    compiler = TemplateCompiler(environment, canonicalizer)
    (scratch / "compiled").mkdir(parents=True)
    (scratch / "flattened").mkdir()
    compiled = CompilationResultCollection()
    for name in ("base.html", "partials/user.html", "child.html"):
        compiled.add(compiler.compile(root / "templates" / name, scratch / "compiled"))
    return canonicalizer, TemplateFlattener().flatten(compiled, scratch / "flattened")


def _observation(template: str, **variables: str) -> ContextObservation:
    return ContextObservation(
        template=template,
        file=Path("/app/views.py"),
        line=10,
        variables=tuple(
            ObservedVariable(name, annotation, (annotation.rpartition(".")[0],))
            for name, annotation in variables.items()
        ),
    )


def test_union_annotation() -> None:
    assert union_annotation([]) == "typing.Any"
    assert union_annotation(["builtins.int"]) == "builtins.int"
    assert union_annotation(["builtins.int", "None", "builtins.int"]) == "builtins.int | None"
    assert union_annotation(["app.models.User", "typing.Any"]) == "typing.Any"


def test_replace_context_section_shifts_following_lines() -> None:
    source = f"# title\n{CONTEXT_START}\nx: typing.Any\n{CONTEXT_END}\n\nbody\n"

    new_source, line_map = replace_context_section(source, ["import app", "x: app.X", "y: typing.Any"])

    assert new_source.splitlines() == [
        "# title",
        CONTEXT_START,
        "import app",
        "x: app.X",
        "y: typing.Any",
        CONTEXT_END,
        "",
        "body",
    ]
    assert line_map == {1: 1, 2: 2, 4: 6, 5: 7, 6: 8}


def test_replace_context_section_requires_markers() -> None:
    with pytest.raises(ValueError, match="no context section"):
        replace_context_section("x = 1\n", [])


def test_group_observations_by_canonical_template(tmp_path: Path) -> None:
    root = _copy_site_fixture(tmp_path / "site")
    canonicalizer = TemplateCanonicalizer(build_environment(root, JinjastanConfig()))
    child = root / "templates" / "child.html"

    grouped = group_observations(
        [
            _observation("child.html", user="app.models.User"),
            _observation(str(child), user="app.models.Admin", page="app.models.Page"),
            _observation("unknown.html", user="builtins.str"),
        ],
        canonicalizer,
    )

    assert list(grouped) == [child]
    assert dict(grouped[child].alternatives) == {
        "user": ["app.models.User", "app.models.Admin"],
        "page": ["app.models.Page"],
    }
    assert list(grouped[child].modules) == ["app.models"]


def test_inject_declares_observed_types(tmp_path: Path) -> None:
    root = _copy_site_fixture(tmp_path / "site")
    canonicalizer, flattened = _flatten_site(root, tmp_path / "scratch")
    out_dir = tmp_path / "scratch" / "injected"
    out_dir.mkdir()
    child = root / "templates" / "child.html"

    injected = ScopeInjector(canonicalizer).inject(
        [
            _observation("child.html", user="app.models.User", page="app.models.Page"),
            _observation("child.html", user="None"),
        ],
        flattened,
        out_dir,
    )

    assert len(injected) == len(flattened)
    unit = injected.get(child)
    assert unit is not None
    assert unit.python_file.parent == out_dir
    assert unit.python_file.read_text(encoding="utf-8") == unit.source
    assert unit.declarations == {
        "items": "typing.Any",
        "page": "app.models.Page",
        "user": "app.models.User | None",
        "site_name": "typing.Any",
    }
    assert "import app.models\n" in unit.source
    assert "user: app.models.User | None\n" in unit.source

    base = injected.get(root / "templates" / "base.html")
    assert base is not None
    assert base.declarations == {"site_name": "typing.Any"}


def test_inject_preserves_source_map_for_template_lines(tmp_path: Path) -> None:
    root = _copy_site_fixture(tmp_path / "site")
    canonicalizer, flattened = _flatten_site(root, tmp_path / "scratch")
    out_dir = tmp_path / "scratch" / "injected"
    out_dir.mkdir()
    child = root / "templates" / "child.html"

    injected = ScopeInjector(canonicalizer).inject(
        [_observation("child.html", user="app.models.User", page="app.models.Page")],
        flattened,
        out_dir,
    )
    before = flattened.get(child)
    after = injected.get(child)
    assert before is not None
    assert after is not None
    assert injected.get_by_python_file(after.python_file) is after

    before_lines = before.source.splitlines()
    after_lines = after.source.splitlines()
    assert [before_lines[n - 1] for n in sorted(before.source_map)] == [
        after_lines[n - 1] for n in sorted(after.source_map)
    ]
    assert [before.source_map[n] for n in sorted(before.source_map)] == [
        after.source_map[n] for n in sorted(after.source_map)
    ]

    start = after_lines.index(CONTEXT_START) + 1
    end = after_lines.index(CONTEXT_END) + 1
    assert not any(start <= number <= end for number in after.source_map)
