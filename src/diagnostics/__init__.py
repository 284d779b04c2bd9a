"""Diagnostics: source chains, mapping, filtering and baselines."""

from diagnostics.baseline import (
    BaselineErrorFilter,
    BaselineFormatError,
    InternalConsistencyError,
    dump_baseline,
    generate_baseline,
    load_baseline,
)
from diagnostics.collapser import ErrorCollapser
from diagnostics.filter import ErrorFilter
from diagnostics.mapper import ErrorToSourceFileMapper, build_render_point_table
from diagnostics.models import (
    RawDiagnostic,
    RenderPoint,
    ResolvedDiagnostic,
    SourceChain,
    SourceLocation,
)
from diagnostics.transformer import ErrorTransformer

__all__ = [
    "BaselineErrorFilter",
    "BaselineFormatError",
    "ErrorCollapser",
    "ErrorFilter",
    "ErrorToSourceFileMapper",
    "ErrorTransformer",
    "InternalConsistencyError",
    "RawDiagnostic",
    "RenderPoint",
    "ResolvedDiagnostic",
    "SourceChain",
    "SourceLocation",
    "build_render_point_table",
    "dump_baseline",
    "generate_baseline",
    "load_baseline",
]
