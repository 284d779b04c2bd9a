"""Compiled units and their per-run collection."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from diagnostics.models import SourceLocation


@dataclass(frozen=True)
class CompiledUnit:
    """A template translated into one Python module.

    ``source_map`` maps generated line numbers to the template line each
    statement came from. Scaffolding lines are absent from the map.
    """

    template: Path
    python_file: Path
    source: str
    source_map: dict[int, SourceLocation]
    context_variables: tuple[str, ...]
    parent: Path | None = None
    includes: tuple[Path, ...] = ()


@dataclass
class CompilationResultCollection:
    units: dict[Path, CompiledUnit] = field(default_factory=dict)

    def add(self, unit: CompiledUnit) -> None:
        self.units[unit.template] = unit

    def get(self, template: Path) -> CompiledUnit | None:
        return self.units.get(template)

    def __contains__(self, template: object) -> bool:
        return template in self.units

    def __iter__(self) -> Iterator[CompiledUnit]:
        return iter(self.units.values())

    def __len__(self) -> int:
        return len(self.units)


__all__ = ["CompilationResultCollection", "CompiledUnit"]
