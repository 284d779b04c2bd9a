"""Mapping checker findings back onto templates."""

from __future__ import annotations

import logging
from collections import defaultdict
from pathlib import Path
from typing import TYPE_CHECKING

from diagnostics.models import RenderPoint, ResolvedDiagnostic, SourceLocation
from discovery.canonicalizer import UnableToCanonicalizeTemplate
from utils import natural_key

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from diagnostics.models import RawDiagnostic
    from discovery.canonicalizer import TemplateCanonicalizer
    from flattening.flattener import FlatteningResultCollection
    from injection.scope_injector import ScopeInjectionResultCollection
    from typecheck.results import RenderCall

logger = logging.getLogger(__name__)

RenderPointTable = dict[Path, tuple[RenderPoint, ...]]


def build_render_point_table(
    calls: Sequence[RenderCall],
    *,
    canonicalizer: TemplateCanonicalizer,
    flattened: FlatteningResultCollection,
) -> RenderPointTable:
    """Index render calls by the canonical template they render.

    Calls made from generated code (a template rendering another template
    through a render function) point at the template line instead of the
    generated line. Points are deduplicated and sorted by file and line.
    """
    table: dict[Path, set[RenderPoint]] = defaultdict(set)
    for call in calls:
        try:
            template = canonicalizer.canonicalize(call.template)
        except UnableToCanonicalizeTemplate:
            logger.debug("Ignoring render call of unknown template %r", call.template)
            continue

        location = SourceLocation(call.file, call.line)
        unit = flattened.get_by_python_file(call.file)
        if unit is not None:
            chain = unit.source_map.get(call.line)
            location = chain.last if chain is not None else SourceLocation(unit.template, call.line)

        table[template].add(RenderPoint(template, location))

    return {
        template: tuple(
            sorted(points, key=lambda point: (natural_key(str(point.location.file)), point.location.line))
        )
        for template, points in table.items()
    }


class ErrorToSourceFileMapper:
    """Turns raw diagnostics on generated units into template diagnostics."""

    def __init__(
        self,
        units: ScopeInjectionResultCollection,
        render_points: Mapping[Path, tuple[RenderPoint, ...]],
    ) -> None:
        self._units = units
        self._render_points = render_points

    def map(self, diagnostics: Sequence[RawDiagnostic]) -> list[ResolvedDiagnostic]:
        """Map diagnostics in generated coordinates onto template coordinates.

        Findings on scaffolding lines are dropped. Findings that cannot be
        tied to a template line (whole-file findings, findings in files that
        are not generated units) are kept, unmapped and not suppressible.
        """
        resolved: list[ResolvedDiagnostic] = []
        for diagnostic in diagnostics:
            unit = self._units.get_by_python_file(diagnostic.file)

            if unit is None or diagnostic.line < 1:
                resolved.append(
                    ResolvedDiagnostic(
                        message=diagnostic.message,
                        identifier=diagnostic.identifier,
                        tip=diagnostic.tip,
                        python_file=diagnostic.file,
                        python_line=diagnostic.line,
                        chain=None,
                        can_be_suppressed=False,
                    )
                )
                continue

            chain = unit.source_map.get(diagnostic.line)
            if chain is None:
                logger.debug(
                    "Dropping finding on generated line %s:%d: %s",
                    diagnostic.file,
                    diagnostic.line,
                    diagnostic.message,
                )
                continue

            resolved.append(
                ResolvedDiagnostic(
                    message=diagnostic.message,
                    identifier=diagnostic.identifier,
                    tip=diagnostic.tip,
                    python_file=diagnostic.file,
                    python_line=diagnostic.line,
                    chain=chain,
                    render_points=self._render_points.get(chain.last.file, ()),
                    can_be_suppressed=diagnostic.can_be_suppressed,
                )
            )
        return resolved


__all__ = ["ErrorToSourceFileMapper", "RenderPointTable", "build_render_point_table"]
