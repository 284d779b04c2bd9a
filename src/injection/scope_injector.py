"""Declaring the types of template variables in flattened units."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from compilation.codegen import CONTEXT_END, CONTEXT_START, context_declaration
from discovery.canonicalizer import UnableToCanonicalizeTemplate
from injection.types import union_annotation
from utils import generated_file_name

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence
    from pathlib import Path

    from diagnostics.models import SourceChain
    from discovery.canonicalizer import TemplateCanonicalizer
    from flattening.flattener import FlattenedUnit, FlatteningResultCollection
    from typecheck.results import ContextObservation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScopeInjectedUnit:
    template: Path
    python_file: Path
    source: str
    source_map: dict[int, SourceChain]
    declarations: dict[str, str]


@dataclass
class ScopeInjectionResultCollection:
    units: dict[Path, ScopeInjectedUnit] = field(default_factory=dict)
    _by_python_file: dict[Path, ScopeInjectedUnit] = field(default_factory=dict)

    def add(self, unit: ScopeInjectedUnit) -> None:
        self.units[unit.template] = unit
        self._by_python_file[unit.python_file] = unit

    def get(self, template: Path) -> ScopeInjectedUnit | None:
        return self.units.get(template)

    def get_by_python_file(self, python_file: Path) -> ScopeInjectedUnit | None:
        return self._by_python_file.get(python_file)

    def __iter__(self) -> Iterator[ScopeInjectedUnit]:
        return iter(self.units.values())

    def __len__(self) -> int:
        return len(self.units)


@dataclass
class _Observed:
    alternatives: dict[str, list[str]] = field(default_factory=lambda: defaultdict(list))
    modules: dict[str, None] = field(default_factory=dict)


def group_observations(
    observations: Sequence[ContextObservation], canonicalizer: TemplateCanonicalizer
) -> dict[Path, _Observed]:
    """Group observed variable types by canonical template.

    Observations naming a template that does not resolve are skipped; the
    render call itself is reported elsewhere.
    """
    grouped: dict[Path, _Observed] = defaultdict(_Observed)
    for observation in observations:
        try:
            template = canonicalizer.canonicalize(observation.template)
        except UnableToCanonicalizeTemplate:
            logger.debug("Ignoring observation for unknown template %r", observation.template)
            continue
        observed = grouped[template]
        for variable in observation.variables:
            observed.alternatives[variable.name].append(variable.annotation)
            observed.modules.update(dict.fromkeys(variable.modules))
    return grouped


class ScopeInjector:
    """Rewrites the context section of flattened units with observed types."""

    def __init__(self, canonicalizer: TemplateCanonicalizer) -> None:
        self._canonicalizer = canonicalizer

    def inject(
        self,
        observations: Sequence[ContextObservation],
        flattened: FlatteningResultCollection,
        directory: Path,
    ) -> ScopeInjectionResultCollection:
        grouped = group_observations(observations, self._canonicalizer)
        results = ScopeInjectionResultCollection()
        for unit in flattened:
            results.add(self._inject_unit(unit, grouped.get(unit.template), directory))
        return results

    def _inject_unit(
        self, unit: FlattenedUnit, observed: _Observed | None, directory: Path
    ) -> ScopeInjectedUnit:
        declarations = {name: "typing.Any" for name in unit.context_variables}
        imports: list[str] = []
        if observed is not None:
            for name, alternatives in observed.alternatives.items():
                declarations[name] = union_annotation(alternatives)
            imports = [
                f"import {module}"
                for module in observed.modules
                if module and module != "typing"
            ]

        section = [*imports, *(context_declaration(name, annotation) for name, annotation in declarations.items())]
        source, line_map = replace_context_section(unit.source, section)

        source_map: dict[int, SourceChain] = {}
        for old_line, chain in unit.source_map.items():
            new_line = line_map.get(old_line)
            if new_line is not None:
                source_map[new_line] = chain

        python_file = directory / generated_file_name(unit.template)
        python_file.write_text(source, encoding="utf-8")
        logger.debug("Injected %d declarations into %s", len(declarations), python_file)
        return ScopeInjectedUnit(
            template=unit.template,
            python_file=python_file,
            source=source,
            source_map=source_map,
            declarations=declarations,
        )


def replace_context_section(source: str, section: Sequence[str]) -> tuple[str, dict[int, int]]:
    """Replace the lines between the context markers.

    Returns the new source and a map from old to new line numbers for every
    line outside the replaced section.

    Raises:
        ValueError: If the source has no context section.
    """
    lines = source.splitlines()
    try:
        start = lines.index(CONTEXT_START)
        end = lines.index(CONTEXT_END, start)
    except ValueError as exc:
        msg = "Generated unit has no context section"
        raise ValueError(msg) from exc

    new_lines = [*lines[: start + 1], *section, *lines[end:]]
    shift = len(section) - (end - start - 1)

    line_map: dict[int, int] = {}
    for index in range(len(lines)):
        if index <= start:
            line_map[index + 1] = index + 1
        elif index >= end:
            line_map[index + 1] = index + 1 + shift
    return "\n".join(new_lines) + "\n", line_map


__all__ = [
    "ScopeInjectedUnit",
    "ScopeInjectionResultCollection",
    "ScopeInjector",
    "group_observations",
    "replace_context_section",
]
