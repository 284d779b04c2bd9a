"""Configuration and noise rules for jinjastan."""

from rules.config import (
    CheckerConfig,
    ConfigError,
    IgnoreRule,
    JinjastanConfig,
    load_config,
    resolve_scratch_dir,
)
from rules.noise import DEFAULT_IGNORE_RULES, build_ignore_rules

__all__ = [
    "DEFAULT_IGNORE_RULES",
    "CheckerConfig",
    "ConfigError",
    "IgnoreRule",
    "JinjastanConfig",
    "build_ignore_rules",
    "load_config",
    "resolve_scratch_dir",
]
