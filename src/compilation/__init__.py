"""Compilation of Jinja2 templates into type-checkable Python modules."""

from compilation.compiler import CompilationError, TemplateCompiler, context_variables
from compilation.results import CompilationResultCollection, CompiledUnit

__all__ = [
    "CompilationError",
    "CompilationResultCollection",
    "CompiledUnit",
    "TemplateCompiler",
    "context_variables",
]
