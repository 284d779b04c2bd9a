"""Baseline file schema."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

BASELINE_SCHEMA_VERSION = 1


class BaselineEntry(BaseModel):
    """Diagnostics sharing one signature and how many of them were recorded.

    ``template_path`` is relative to the directory holding the baseline
    file, in POSIX form.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    message: str
    identifier: str | None = None
    template_path: str
    count: int = Field(ge=1)


class BaselineFile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    schema_version: int = BASELINE_SCHEMA_VERSION
    errors: list[BaselineEntry] = Field(default_factory=list)


__all__ = ["BASELINE_SCHEMA_VERSION", "BaselineEntry", "BaselineFile"]
