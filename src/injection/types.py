"""Combining the types observed for one template variable."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

ANY = "typing.Any"


def union_annotation(alternatives: Iterable[str]) -> str:
    """Return the annotation accepting every observed alternative.

    Alternatives are deduplicated in first-seen order. One ``typing.Any``
    makes the whole union ``typing.Any``; no alternatives at all means
    nothing is known, which is also ``typing.Any``.

    Examples:
        >>> union_annotation(["builtins.int", "builtins.str", "builtins.int"])
        'builtins.int | builtins.str'
        >>> union_annotation(["builtins.int", "typing.Any"])
        'typing.Any'
    """
    seen: list[str] = []
    for alternative in alternatives:
        if alternative == ANY:
            return ANY
        if alternative not in seen:
            seen.append(alternative)
    if not seen:
        return ANY
    return " | ".join(seen)


__all__ = ["ANY", "union_annotation"]
