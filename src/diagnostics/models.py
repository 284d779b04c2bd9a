"""Source locations, chains and resolved diagnostics."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from utils import relative_posix

if TYPE_CHECKING:
    from collections.abc import Iterator


@dataclass(frozen=True, order=True)
class SourceLocation:
    """A 1-based line in a file."""

    file: Path
    line: int

    def to_string(self, relative_to: Path | None = None) -> str:
        if relative_to is None:
            return f"{self.file}:{self.line}"
        return f"{relative_posix(self.file, relative_to)}:{self.line}"


@dataclass(frozen=True)
class SourceChain:
    """Ordered, non-empty sequence of source locations.

    Iteration yields the outermost location first and the original template
    line last. Chains are persistent: :meth:`wrap` shares the existing chain
    instead of copying it, so two chains never alias a mutable prefix.
    """

    location: SourceLocation
    inner: SourceChain | None = None

    @classmethod
    def of(cls, *locations: SourceLocation) -> SourceChain:
        if not locations:
            msg = "A source chain needs at least one location"
            raise ValueError(msg)
        chain: SourceChain | None = None
        for location in reversed(locations):
            chain = cls(location, chain)
        assert chain is not None
        return chain

    def wrap(self, location: SourceLocation) -> SourceChain:
        """Return a new chain with ``location`` as its outermost link."""
        return SourceChain(location, self)

    def within(self, outer: SourceChain) -> SourceChain:
        """Return ``outer`` followed by this chain (``outer`` outermost)."""
        chain = self
        for location in reversed(list(outer)):
            chain = chain.wrap(location)
        return chain

    def __iter__(self) -> Iterator[SourceLocation]:
        node: SourceChain | None = self
        while node is not None:
            yield node.location
            node = node.inner

    def __len__(self) -> int:
        return sum(1 for _ in self)

    @property
    def last(self) -> SourceLocation:
        node = self
        while node.inner is not None:
            node = node.inner
        return node.location

    def to_string(self, relative_to: Path | None = None) -> str:
        return " > ".join(location.to_string(relative_to) for location in self)


@dataclass(frozen=True, order=True)
class RenderPoint:
    """A call site in application code that renders ``template``."""

    template: Path
    location: SourceLocation


@dataclass(frozen=True)
class RawDiagnostic:
    """A checker finding in generated coordinates."""

    file: Path
    line: int
    message: str
    identifier: str | None = None
    tip: str | None = None
    can_be_suppressed: bool = True


@dataclass(frozen=True)
class ResolvedDiagnostic:
    """A checker finding mapped back onto template coordinates."""

    message: str
    identifier: str | None = None
    tip: str | None = None
    python_file: Path | None = None
    python_line: int | None = None
    chain: SourceChain | None = None
    render_points: tuple[RenderPoint, ...] = field(default_factory=tuple)
    can_be_suppressed: bool = True

    @property
    def template(self) -> Path | None:
        """The template owning the original line, if the chain is known."""
        if self.chain is None:
            return None
        return self.chain.last.file


__all__ = [
    "RawDiagnostic",
    "RenderPoint",
    "ResolvedDiagnostic",
    "SourceChain",
    "SourceLocation",
]
