"""Flattening of compiled templates into self-contained units."""

from flattening.flattener import (
    FlattenedUnit,
    FlatteningError,
    FlatteningResultCollection,
    TemplateFlattener,
)

__all__ = [
    "FlattenedUnit",
    "FlatteningError",
    "FlatteningResultCollection",
    "TemplateFlattener",
]
