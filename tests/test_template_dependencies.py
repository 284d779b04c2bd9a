from __future__ import annotations

import shutil
from pathlib import Path

import pytest
from jinja2 import nodes

from discovery import (
    TemplateCanonicalizer,
    UnableToCanonicalizeTemplate,
    build_dependency_graph,
    build_environment,
)
from discovery.dependencies import constant_template_names
from rules.config import JinjastanConfig

FIXTURE_SITE = Path(__file__).parent / "fixtures" / "site"


def _copy_site_fixture(root: Path) -> Path:
    shutil.copytree(FIXTURE_SITE, root)
    return root.resolve()


def _canonicalizer(root: Path, config: JinjastanConfig | None = None) -> TemplateCanonicalizer:
    return TemplateCanonicalizer(build_environment(root, config or JinjastanConfig()))


def test_canonicalize_name_and_path_agree(tmp_path: Path) -> None:
    root = _copy_site_fixture(tmp_path / "site")
    canonicalizer = _canonicalizer(root)

    by_name = canonicalizer.canonicalize_name("partials/user.html")
    by_path = canonicalizer.canonicalize_path(root / "templates" / "partials" / ".." / "partials" / "user.html")

    assert by_name == by_path == root / "templates" / "partials" / "user.html"
    assert canonicalizer.canonicalize(str(by_path)) == by_path


def test_canonicalize_unknown_template(tmp_path: Path) -> None:
    root = _copy_site_fixture(tmp_path / "site")
    canonicalizer = _canonicalizer(root)

    with pytest.raises(UnableToCanonicalizeTemplate, match="missing.html"):
        canonicalizer.canonicalize("missing.html")
    with pytest.raises(UnableToCanonicalizeTemplate):
        canonicalizer.canonicalize_path(root / "templates" / "missing.html")


def test_canonicalize_namespaced_name(tmp_path: Path) -> None:
    root = _copy_site_fixture(tmp_path / "site")
    (root / "admin").mkdir()
    (root / "admin" / "index.html").write_text("admin\n", encoding="utf-8")
    config = JinjastanConfig(namespaces={"admin": "admin"})

    assert _canonicalizer(root, config).canonicalize("admin/index.html") == root / "admin" / "index.html"


def test_dependency_graph_follows_extends_and_include(tmp_path: Path) -> None:
    root = _copy_site_fixture(tmp_path / "site")
    config = JinjastanConfig()
    environment = build_environment(root, config)
    templates = root / "templates"

    graph = build_dependency_graph(
        [templates / "child.html"],
        environment=environment,
        canonicalizer=TemplateCanonicalizer(environment),
    )

    assert graph.dependencies_of(templates / "child.html") == [
        templates / "base.html",
        templates / "partials" / "user.html",
    ]
    assert set(graph.nodes) == {
        templates / "child.html",
        templates / "base.html",
        templates / "partials" / "user.html",
    }
    assert graph.warnings == []


def test_dependency_graph_warns_on_dynamic_and_missing_targets(tmp_path: Path) -> None:
    root = _copy_site_fixture(tmp_path / "site")
    templates = root / "templates"
    (templates / "dynamic.html").write_text(
        "{% include widget %}\n"
        '{% include "gone.html" %}\n'
        '{% include "optional.html" ignore missing %}\n',
        encoding="utf-8",
    )
    environment = build_environment(root, JinjastanConfig())

    graph = build_dependency_graph(
        [templates / "dynamic.html"],
        environment=environment,
        canonicalizer=TemplateCanonicalizer(environment),
    )

    assert graph.dependencies_of(templates / "dynamic.html") == []
    assert len(graph.warnings) == 2
    assert "dynamic include" in graph.warnings[0]
    assert "gone.html" in graph.warnings[1]


def test_constant_template_names() -> None:
    conditional = nodes.CondExpr(
        nodes.Name("wide", "load"),
        nodes.Const("wide.html"),
        nodes.List([nodes.Const("narrow.html"), nodes.Const("wide.html")]),
    )

    assert constant_template_names(nodes.Const("a.html")) == ("a.html",)
    assert constant_template_names(conditional) == ("wide.html", "narrow.html")
    assert constant_template_names(nodes.Name("layout", "load")) is None
