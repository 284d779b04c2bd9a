"""Dropping known-noise diagnostics."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from diagnostics.models import ResolvedDiagnostic
    from rules.config import IgnoreRule


class ErrorFilter:
    """Removes diagnostics matching any ignore rule."""

    def __init__(self, rules: Sequence[IgnoreRule]) -> None:
        self._rules = list(rules)

    def is_ignored(self, diagnostic: ResolvedDiagnostic) -> bool:
        return any(rule.matches(diagnostic.message, diagnostic.identifier) for rule in self._rules)

    def filter(self, diagnostics: Sequence[ResolvedDiagnostic]) -> list[ResolvedDiagnostic]:
        return [diagnostic for diagnostic in diagnostics if not self.is_ignored(diagnostic)]


__all__ = ["ErrorFilter"]
