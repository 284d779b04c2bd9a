"""What the pipeline needs from a type checker, independent of which one."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from diagnostics.models import RawDiagnostic


@dataclass(frozen=True)
class RenderCall:
    """A render call found in application code.

    ``template`` is the name as written at the call site, not yet
    canonicalized.
    """

    template: str
    file: Path
    line: int


@dataclass(frozen=True)
class ObservedVariable:
    name: str
    annotation: str
    modules: tuple[str, ...] = ()


@dataclass(frozen=True)
class ContextObservation:
    """The variables one render call passes to one template."""

    template: str
    file: Path
    line: int
    variables: tuple[ObservedVariable, ...] = ()


@dataclass
class CollectionResult:
    render_calls: list[RenderCall] = field(default_factory=list)
    observations: list[ContextObservation] = field(default_factory=list)
    not_file_specific_errors: list[str] = field(default_factory=list)


@dataclass
class AnalysisResult:
    diagnostics: list[RawDiagnostic] = field(default_factory=list)
    not_file_specific_errors: list[str] = field(default_factory=list)


class TypeChecker(Protocol):
    """A type checker run in two modes over the same kind of input.

    Collection mode reports render calls and the types passed to them;
    analysis mode reports diagnostics. Errors that are not tied to a file
    (a crash, a bad configuration) come back separately and abort the run.
    """

    def collect(self, files: Sequence[Path]) -> CollectionResult: ...

    def analyze(self, files: Sequence[Path]) -> AnalysisResult: ...


class CheckerFatalError(Exception):
    """The type checker failed as a whole rather than for a file."""

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors = list(errors)
        super().__init__("\n".join(self.errors) or "Type checker failed")


__all__ = [
    "AnalysisResult",
    "CheckerFatalError",
    "CollectionResult",
    "ContextObservation",
    "ObservedVariable",
    "RenderCall",
    "TypeChecker",
]
