"""Inlining of includes and inheritance into self-contained units.

A flattened unit contains everything a template renders: included templates
become nested functions at their include site, and a child template's body
is followed by its parent's body. Blocks resolve to the most derived
override as ``_jt_block_<name>``; the definitions they override stay
reachable for ``super()`` as ``_jt_block_<name>__super``,
``_jt_block_<name>__super__super`` and so on.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from itertools import count
from typing import TYPE_CHECKING

from compilation.codegen import (
    BLOCK_PREFIX,
    EPILOGUE,
    OUTPUT_BUFFER,
    PROLOGUE,
    CodeLine,
    block_function,
    context_declaration,
    render_module,
)
from diagnostics.models import SourceChain
from flattening.reader import UnreadableUnit, read_unit
from utils import generated_file_name

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence
    from pathlib import Path

    from compilation.results import CompilationResultCollection, CompiledUnit
    from flattening.reader import Segment

logger = logging.getLogger(__name__)

Line = CodeLine[SourceChain]


class FlatteningError(Exception):
    """A compiled unit that cannot be flattened."""

    def __init__(self, template: Path, message: str) -> None:
        self.template = template
        self.message = message
        super().__init__(f"{template}: {message}")


@dataclass(frozen=True)
class FlattenedUnit:
    """A template with all its includes and ancestors inlined.

    ``source_map`` maps generated line numbers to source chains; every chain
    ends with the template line the statement was written on.
    """

    template: Path
    python_file: Path
    source: str
    source_map: dict[int, SourceChain]
    context_variables: tuple[str, ...]


@dataclass
class FlatteningResultCollection:
    units: dict[Path, FlattenedUnit] = field(default_factory=dict)
    errors: list[FlatteningError] = field(default_factory=list)
    _by_python_file: dict[Path, FlattenedUnit] = field(default_factory=dict)

    def add(self, unit: FlattenedUnit) -> None:
        self.units[unit.template] = unit
        self._by_python_file[unit.python_file] = unit

    def get(self, template: Path) -> FlattenedUnit | None:
        return self.units.get(template)

    def get_by_python_file(self, python_file: Path) -> FlattenedUnit | None:
        return self._by_python_file.get(python_file)

    def __contains__(self, template: object) -> bool:
        return template in self.units

    def __iter__(self) -> Iterator[FlattenedUnit]:
        return iter(self.units.values())

    def __len__(self) -> int:
        return len(self.units)


@dataclass
class _Composite:
    """A template's fully expanded definitions and body, before rendering."""

    definitions: dict[str, list[list[Line]]]
    body: list[Line]
    context: tuple[str, ...]


def _wrap(lines: Sequence[Line], site: SourceChain | None, levels: int) -> list[Line]:
    wrapped: list[Line] = []
    for line in lines:
        origin = line.origin
        if origin is not None and site is not None:
            origin = origin.within(site)
        wrapped.append(CodeLine(line.indent + levels, line.code, origin))
    return wrapped


def _without_output(lines: Sequence[Line]) -> list[Line]:
    """Keep the top-level statements of a child template that do not render.

    Jinja2 discards the output a child template produces outside its blocks,
    but still runs its assignments, imports and macro definitions.
    """
    groups: list[list[Line]] = []
    for line in lines:
        continues = line.code.startswith(("else:", "elif "))
        if not groups or (line.indent == 0 and not continues):
            groups.append([])
        groups[-1].append(line)
    return [
        line
        for group in groups
        if group[0].code.startswith("def ")
        or not any(f"{OUTPUT_BUFFER}.append(" in statement.code for statement in group)
        for line in group
    ]


def _rename_definition(name: str, level: int, lines: Sequence[Line]) -> list[Line]:
    """Rename a block definition to ``level`` and re-point its ``super()``."""
    if level == 0:
        return list(lines)
    header = re.compile(rf"^def {re.escape(BLOCK_PREFIX + name)}\(")
    parent_call = re.compile(rf"\b{re.escape(block_function(name, 1))}\(")
    renamed: list[Line] = []
    for index, line in enumerate(lines):
        code = line.code
        if index == 0:
            code = header.sub(f"def {block_function(name, level)}(", code)
        else:
            code = parent_call.sub(f"{block_function(name, level + 1)}(", code)
        renamed.append(CodeLine(line.indent, code, line.origin))
    return renamed


def emit_definitions(definitions: dict[str, list[list[Line]]]) -> list[Line]:
    lines: list[Line] = []
    for name, chain in definitions.items():
        for level, definition in enumerate(chain):
            lines.extend(_rename_definition(name, level, definition))
    return lines


class TemplateFlattener:
    """Flattens compiled units, dependencies first."""

    def __init__(self) -> None:
        self._composites: dict[Path, _Composite] = {}
        self._compiled: CompilationResultCollection | None = None

    def flatten(
        self,
        compiled: CompilationResultCollection,
        directory: Path,
        *,
        strict: bool = False,
    ) -> FlatteningResultCollection:
        """Flatten every compiled unit and write the results to ``directory``.

        Failures are collected on the result, or raised when ``strict``.
        """
        self._composites = {}
        self._compiled = compiled
        results = FlatteningResultCollection()
        directory.mkdir(parents=True, exist_ok=True)

        for unit in compiled:
            try:
                composite = self._composite(unit.template)
            except FlatteningError as exc:
                if strict:
                    raise
                logger.warning("%s", exc)
                results.errors.append(exc)
                continue
            results.add(self._write(unit, composite, directory))

        return results

    def _write(self, unit: CompiledUnit, composite: _Composite, directory: Path) -> FlattenedUnit:
        variables = composite.context
        source, source_map = render_module(
            title=f"Flattened by jinjastan from {unit.template}. Do not edit.",
            context=[context_declaration(name) for name in variables],
            definitions=emit_definitions(composite.definitions),
            body=composite.body,
        )
        python_file = directory / generated_file_name(unit.template)
        python_file.write_text(source, encoding="utf-8")
        logger.debug("Flattened %s -> %s", unit.template, python_file)
        return FlattenedUnit(
            template=unit.template,
            python_file=python_file,
            source=source,
            source_map=source_map,
            context_variables=variables,
        )

    def _composite(self, template: Path) -> _Composite:
        cached = self._composites.get(template)
        if cached is not None:
            return cached

        assert self._compiled is not None
        unit = self._compiled.get(template)
        if unit is None:
            msg = "was not compiled"
            raise FlatteningError(template, msg)

        try:
            read = read_unit(unit)
        except UnreadableUnit as exc:
            raise FlatteningError(template, str(exc)) from exc

        context = dict.fromkeys(unit.context_variables)
        include_ids = count(1)
        parent: Path | None = None
        extends_at: int | None = None

        def expand(segments: Sequence[Segment]) -> list[Line]:
            nonlocal parent, extends_at
            lines: list[Line] = []
            for segment in segments:
                directive = segment.directive
                if directive is None:
                    lines.append(segment.line)
                elif directive.kind == "extends":
                    parent = directive.target
                    extends_at = len(lines)
                else:
                    included = self._dependency(template, directive.target)
                    context.update(dict.fromkeys(included.context))
                    lines.extend(
                        self._inline(included, segment.line, directive.buffer or "", next(include_ids))
                    )
            return lines

        definitions = {name: [expand(segments)] for name, segments in read.definitions.items()}
        body = expand(read.body)

        if parent is not None:
            ancestor = self._dependency(template, parent)
            context.update(dict.fromkeys(ancestor.context))
            merged: dict[str, list[list[Line]]] = {}
            for name, chain in ancestor.definitions.items():
                merged[name] = definitions.pop(name, []) + chain
            merged.update(definitions)
            definitions = merged
            if extends_at is not None:
                body = body[:extends_at] + _without_output(body[extends_at:])
            body = body + ancestor.body

        composite = _Composite(definitions, body, tuple(context))
        self._composites[template] = composite
        return composite

    def _dependency(self, template: Path, dependency: Path) -> _Composite:
        try:
            return self._composite(dependency)
        except FlatteningError as exc:
            msg = f"depends on {dependency}, which could not be flattened"
            raise FlatteningError(template, msg) from exc

    def _inline(self, included: _Composite, site: Line, buffer: str, number: int) -> list[Line]:
        """Replace an include site with a nested function rendering the include."""
        function = f"_jt_include_{number}"
        inner = site.indent + 1
        return [
            CodeLine(site.indent, f"def {function}() -> str:", site.origin),
            *_wrap(emit_definitions(included.definitions), site.origin, inner),
            CodeLine(inner, PROLOGUE),
            *_wrap(included.body, site.origin, inner),
            CodeLine(inner, EPILOGUE),
            CodeLine(site.indent, f"{buffer}.append({function}())", site.origin),
        ]


__all__ = [
    "FlattenedUnit",
    "FlatteningError",
    "FlatteningResultCollection",
    "TemplateFlattener",
    "emit_definitions",
]
