"""Injection of observed variable types into flattened units."""

from injection.scope_injector import (
    ScopeInjectedUnit,
    ScopeInjectionResultCollection,
    ScopeInjector,
)
from injection.types import union_annotation

__all__ = [
    "ScopeInjectedUnit",
    "ScopeInjectionResultCollection",
    "ScopeInjector",
    "union_annotation",
]
