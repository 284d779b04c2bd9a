"""Static dependency discovery over templates."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from jinja2 import TemplateSyntaxError, nodes

from discovery.canonicalizer import UnableToCanonicalizeTemplate
from discovery.environment import parse_template

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from pathlib import Path

    from jinja2 import Environment

    from discovery.canonicalizer import TemplateCanonicalizer

logger = logging.getLogger(__name__)

ReferenceKind = Literal["extends", "include", "import"]


@dataclass(frozen=True)
class TemplateReference:
    """A static reference from one template to others.

    ``names`` is None when the target is computed at runtime.
    """

    kind: ReferenceKind
    lineno: int
    names: tuple[str, ...] | None
    ignore_missing: bool = False


@dataclass
class DependencyGraph:
    """Directed graph of templates; an edge A -> B means A depends on B."""

    nodes: list[Path] = field(default_factory=list)
    edges: dict[Path, list[Path]] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    def add_node(self, template: Path) -> bool:
        """Add a node; return True when it was not known yet."""
        if template in self.edges:
            return False
        self.nodes.append(template)
        self.edges[template] = []
        return True

    def add_edge(self, source: Path, target: Path) -> None:
        self.add_node(source)
        self.add_node(target)
        if target not in self.edges[source]:
            self.edges[source].append(target)

    def dependencies_of(self, template: Path) -> list[Path]:
        return list(self.edges.get(template, []))


def constant_template_names(expr: nodes.Expr) -> tuple[str, ...] | None:
    """Return the template names an expression can statically evaluate to.

    Lists and tuples contribute every element, conditional expressions both
    branches. Anything computed at runtime yields None.
    """
    if isinstance(expr, nodes.Const):
        if isinstance(expr.value, str):
            return (expr.value,)
        return None

    if isinstance(expr, (nodes.List, nodes.Tuple)):
        names: list[str] = []
        for item in expr.items:
            item_names = constant_template_names(item)
            if item_names is None:
                return None
            names.extend(item_names)
        return tuple(names)

    if isinstance(expr, nodes.CondExpr):
        first = constant_template_names(expr.expr1)
        if first is None:
            return None
        if expr.expr2 is None:
            return first
        second = constant_template_names(expr.expr2)
        if second is None:
            return None
        return first + tuple(name for name in second if name not in first)

    return None


def iter_references(ast: nodes.Template) -> Iterator[TemplateReference]:
    """Yield every extends/include/import reference of a template."""
    for node in ast.find_all(
        (nodes.Extends, nodes.Include, nodes.Import, nodes.FromImport)
    ):
        if isinstance(node, nodes.Extends):
            kind: ReferenceKind = "extends"
            ignore_missing = False
        elif isinstance(node, nodes.Include):
            kind = "include"
            ignore_missing = node.ignore_missing
        else:
            kind = "import"
            ignore_missing = False
        yield TemplateReference(
            kind=kind,
            lineno=node.lineno,
            names=constant_template_names(node.template),
            ignore_missing=ignore_missing,
        )


def build_dependency_graph(
    seed: Iterable[Path],
    *,
    environment: Environment,
    canonicalizer: TemplateCanonicalizer,
) -> DependencyGraph:
    """Discover the transitive static dependencies of the seed templates.

    Unresolvable and dynamic references are recorded as warnings instead of
    edges. Templates that fail to parse keep no outgoing edges; the compiler
    reports the syntax error later.
    """
    graph = DependencyGraph()
    queue: deque[Path] = deque()
    for template in seed:
        if graph.add_node(template):
            queue.append(template)

    while queue:
        template = queue.popleft()
        try:
            ast = parse_template(environment, template)
        except TemplateSyntaxError as exc:
            graph.warnings.append(f"{template}:{exc.lineno}: {exc.message}")
            continue
        except OSError as exc:
            graph.warnings.append(f"{template}: {exc}")
            continue

        for reference in iter_references(ast):
            if reference.names is None:
                graph.warnings.append(
                    f"{template}:{reference.lineno}: dynamic {reference.kind} "
                    "target cannot be resolved statically"
                )
                continue

            for name in reference.names:
                try:
                    target = canonicalizer.canonicalize_name(name)
                except UnableToCanonicalizeTemplate as exc:
                    if not reference.ignore_missing:
                        graph.warnings.append(
                            f"{template}:{reference.lineno}: {exc}"
                        )
                    continue

                if target not in graph.edges:
                    queue.append(target)
                graph.add_edge(template, target)

    logger.debug(
        "Dependency graph: %d templates, %d warnings",
        len(graph.nodes),
        len(graph.warnings),
    )
    return graph


__all__ = [
    "DependencyGraph",
    "TemplateReference",
    "build_dependency_graph",
    "constant_template_names",
    "iter_references",
]
