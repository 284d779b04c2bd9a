"""Merging diagnostics that describe the same template problem."""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Hashable, Sequence

    from diagnostics.models import RenderPoint, ResolvedDiagnostic


def _key(diagnostic: ResolvedDiagnostic) -> Hashable:
    location = diagnostic.chain.last if diagnostic.chain is not None else None
    if location is None:
        # Unmapped findings are only duplicates of themselves.
        return (diagnostic.python_file, diagnostic.python_line, diagnostic.identifier, diagnostic.message)
    return (location, diagnostic.identifier, diagnostic.message)


class ErrorCollapser:
    """Collapses diagnostics sharing (template location, identifier, message).

    The same template line is analyzed once per template that inlines it,
    so a mistake in a shared layout shows up once per page. The merged
    diagnostic keeps the first occurrence, gathers every render point, and
    stays suppressible only if all merged diagnostics were.
    """

    def collapse(self, diagnostics: Sequence[ResolvedDiagnostic]) -> list[ResolvedDiagnostic]:
        merged: dict[Hashable, ResolvedDiagnostic] = {}
        for diagnostic in diagnostics:
            key = _key(diagnostic)
            existing = merged.get(key)
            if existing is None:
                merged[key] = diagnostic
                continue

            points: list[RenderPoint] = list(existing.render_points)
            points.extend(point for point in diagnostic.render_points if point not in points)
            merged[key] = replace(
                existing,
                render_points=tuple(points),
                can_be_suppressed=existing.can_be_suppressed and diagnostic.can_be_suppressed,
            )
        return list(merged.values())


__all__ = ["ErrorCollapser"]
