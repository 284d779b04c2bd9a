from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import tomllib
from pydantic import BaseModel, ConfigDict, Field, field_validator

CONFIG_FILENAME = "jinjastan.toml"

DEFAULT_BASELINE_FILENAME = "jinjastan-baseline.json"

BASELINE_EXTENSION = ".json"

DEFAULT_TEMPLATE_EXTENSIONS = [
    ".html",
    ".htm",
    ".xml",
    ".txt",
    ".jinja",
    ".jinja2",
    ".j2",
]

DEFAULT_RENDER_FUNCTIONS = [
    "flask.templating.render_template",
    "flask.templating.stream_template",
]


class _StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class IgnoreRule(_StrictModel):
    """A known-noise pattern over (message, identifier).

    A rule matches when every given field matches: ``identifier`` by equality,
    ``message`` as a regular expression searched in the message.
    """

    identifier: str | None = Field(
        default=None,
        description="Checker error code to ignore (e.g. 'attr-defined')",
    )
    message: str | None = Field(
        default=None,
        description="Regular expression searched in the diagnostic message",
    )

    @field_validator("message")
    @classmethod
    def validate_message_pattern(cls, v: str | None) -> str | None:
        if v is None:
            return v
        try:
            re.compile(v)
        except re.error as exc:
            msg = f"Invalid ignore message pattern {v!r}: {exc}"
            raise ValueError(msg) from exc
        return v

    def matches(self, message: str, identifier: str | None) -> bool:
        if self.identifier is None and self.message is None:
            return False
        if self.identifier is not None and self.identifier != identifier:
            return False
        if self.message is not None and re.search(self.message, message) is None:
            return False
        return True


class CheckerConfig(_StrictModel):
    """Configuration for the external type checker (mypy)."""

    render_functions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_RENDER_FUNCTIONS),
        description=(
            "Fully qualified callables whose first argument is a template name "
            "and whose remaining keyword arguments are template variables"
        ),
    )
    python_executable: str | None = Field(
        default=None,
        description="Interpreter used to run mypy (default: current interpreter)",
    )
    extra_args: list[str] = Field(
        default_factory=list,
        description="Additional command-line arguments passed to mypy",
    )


class JinjastanConfig(_StrictModel):
    """Configuration for a jinjastan run."""

    scratch_dir: str = Field(
        default=".jinjastan",
        description="Scratch directory for generated code (relative to the root)",
    )
    template_paths: list[str] = Field(
        default_factory=lambda: ["templates"],
        description="Template search path, relative to the root",
    )
    namespaces: dict[str, str] = Field(
        default_factory=dict,
        description="Template name prefix -> directory, relative to the root",
    )
    template_extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_TEMPLATE_EXTENSIONS),
        description="File suffixes treated as templates",
    )
    extensions: list[str] = Field(
        default_factory=list,
        description="Additional Jinja2 extensions to load",
    )
    include: list[str] = Field(
        default_factory=list,
        description="Glob patterns for files to include (empty = all files)",
    )
    exclude: list[str] = Field(
        default_factory=list,
        description="Glob patterns for files to exclude",
    )
    nested_gitignore: bool = Field(
        default=False,
        description=(
            "Enable nested .gitignore composition (default: false for root-only)"
        ),
    )
    baseline: str | None = Field(
        default=DEFAULT_BASELINE_FILENAME,
        description="Baseline file applied when it exists",
    )
    default_ignores: bool = Field(
        default=True,
        description="Ignore known noise produced by the shape of generated code",
    )
    ignore: list[IgnoreRule] = Field(
        default_factory=list,
        description="Additional diagnostics to ignore",
    )
    checker: CheckerConfig = Field(
        default_factory=CheckerConfig,
        description="External type checker settings",
    )

    @field_validator("template_extensions", mode="before")
    @classmethod
    def validate_template_extensions(cls, v: Any) -> Any:
        if not isinstance(v, list):
            msg = "template_extensions must be a list of suffixes"
            raise TypeError(msg)
        for suffix in v:
            if not isinstance(suffix, str) or not suffix.startswith("."):
                msg = f"Invalid template extension {suffix!r}: must start with '.'"
                raise ValueError(msg)
            if suffix == ".py":
                msg = "'.py' cannot be used as a template extension"
                raise ValueError(msg)
        return v


class ConfigError(Exception):
    """Raised when config file exists but cannot be parsed."""


def resolve_scratch_dir(root: Path, scratch_dir: str) -> Path:
    """Resolve a config-provided scratch_dir safely within the repo root.

    The config scratch_dir must be a non-empty relative path that remains
    within the repository root after resolution. Absolute paths and paths
    that escape the root are rejected.
    """
    if not scratch_dir:
        msg = "scratch_dir must be a non-empty relative path"
        raise ConfigError(msg)

    if scratch_dir.startswith("~"):
        msg = "scratch_dir must be a relative path within the repo root"
        raise ConfigError(msg)

    scratch_path = Path(scratch_dir)
    if scratch_path.is_absolute():
        msg = "scratch_dir must be a relative path within the repo root"
        raise ConfigError(msg)

    try:
        resolved_root = root.resolve()
        resolved_scratch = (resolved_root / scratch_path).resolve()
    except OSError as exc:
        msg = f"Failed to resolve scratch_dir '{scratch_dir}': {exc}"
        raise ConfigError(msg) from exc

    try:
        relative = resolved_scratch.relative_to(resolved_root)
    except ValueError as exc:
        msg = f"scratch_dir '{scratch_dir}' escapes the repository root"
        raise ConfigError(msg) from exc

    if not relative.parts:
        msg = "scratch_dir must not be the repository root itself"
        raise ConfigError(msg)

    return resolved_scratch


def load_config(root: Path) -> JinjastanConfig:
    """Load configuration from jinjastan.toml if it exists."""
    config_path = Path(root) / CONFIG_FILENAME

    if not config_path.is_file():
        return JinjastanConfig()

    try:
        with config_path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {config_path}: {e}"
        raise ConfigError(msg) from e

    try:
        return JinjastanConfig.model_validate(data)
    except Exception as e:
        msg = f"Invalid config in {config_path}: {e}"
        raise ConfigError(msg) from e
