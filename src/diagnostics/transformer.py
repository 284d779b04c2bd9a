"""Rewriting checker messages in template terms."""

from __future__ import annotations

import builtins
import keyword
import re
from dataclasses import replace
from typing import TYPE_CHECKING

from compilation.codegen import BLOCK_PREFIX, SUPER_SUFFIX

if TYPE_CHECKING:
    from collections.abc import Sequence

    from diagnostics.models import ResolvedDiagnostic

_MISSING_SUPER = re.compile(
    rf'^Name "{BLOCK_PREFIX}(\w+?)(?:{SUPER_SUFFIX})+" is not defined$'
)
_MISSING_BLOCK = re.compile(rf'^Name "{BLOCK_PREFIX}(\w+)" is not defined$')
_MISSING_RUNTIME_ATTRIBUTE = re.compile(
    r'^Module "jinjastan_runtime\.(filters|tests)" has no attribute "(\w+)"'
)
_QUALIFIERS = re.compile(r"\b(?:jinjastan_runtime\.(?:runtime|filters|tests)|builtins)\.")
_RENAMED = re.compile(r'"(\w+)_"')

_KINDS = {"filters": "filter", "tests": "test"}


def _template_name(attribute: str) -> str:
    """Undo the trailing underscore added to filter and test names."""
    if attribute.endswith("_"):
        bare = attribute[:-1]
        if keyword.iskeyword(bare) or hasattr(builtins, bare):
            return bare
    return attribute


def transform_message(message: str) -> str:
    match = _MISSING_SUPER.match(message)
    if match is not None:
        return f'Block "{match.group(1)}" has no parent block to call with super()'

    match = _MISSING_BLOCK.match(message)
    if match is not None:
        return f'Block "{match.group(1)}" is not defined'

    match = _MISSING_RUNTIME_ATTRIBUTE.match(message)
    if match is not None:
        kind = _KINDS[match.group(1)]
        return f'Unknown {kind} "{_template_name(match.group(2))}"'

    message = _QUALIFIERS.sub("", message)
    return _RENAMED.sub(lambda found: f'"{_template_name(found.group(1) + "_")}"', message)


class ErrorTransformer:
    """Rewrites messages and tips that refer to generated code."""

    def transform(self, diagnostics: Sequence[ResolvedDiagnostic]) -> list[ResolvedDiagnostic]:
        transformed: list[ResolvedDiagnostic] = []
        for diagnostic in diagnostics:
            tip = diagnostic.tip
            if tip is not None:
                tip = _QUALIFIERS.sub("", tip)
            transformed.append(
                replace(diagnostic, message=transform_message(diagnostic.message), tip=tip)
            )
        return transformed


__all__ = ["ErrorTransformer", "transform_message"]
