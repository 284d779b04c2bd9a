"""Type checker integration: collection of render calls and analysis."""

from typecheck.mypy_runner import MypyRunner
from typecheck.results import (
    AnalysisResult,
    CheckerFatalError,
    CollectionResult,
    ContextObservation,
    ObservedVariable,
    RenderCall,
    TypeChecker,
)

__all__ = [
    "AnalysisResult",
    "CheckerFatalError",
    "CollectionResult",
    "ContextObservation",
    "MypyRunner",
    "ObservedVariable",
    "RenderCall",
    "TypeChecker",
]
