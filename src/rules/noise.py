"""Known noise produced by the shape of generated code."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rules.config import IgnoreRule

if TYPE_CHECKING:
    from rules.config import JinjastanConfig

# Scaffolding names emitted by the compiler and flattener. Block functions are
# absent: a missing `super()` target is a real template error.
_SCAFFOLDING_PATTERN = r'"_jt_(?:out|buf\d+|include_\d+|caller_\d+|render)"'

DEFAULT_IGNORE_RULES: tuple[IgnoreRule, ...] = (
    IgnoreRule(message=_SCAFFOLDING_PATTERN),
    IgnoreRule(identifier="unused-ignore"),
)


def build_ignore_rules(config: JinjastanConfig) -> list[IgnoreRule]:
    """Return the default rules (unless disabled) followed by configured ones."""
    rules: list[IgnoreRule] = []
    if config.default_ignores:
        rules.extend(DEFAULT_IGNORE_RULES)
    rules.extend(config.ignore)
    return rules


__all__ = ["DEFAULT_IGNORE_RULES", "build_ignore_rules"]
