"""Typed runtime imported by Python code generated from Jinja2 templates."""

from jinjastan_runtime import filters, runtime, tests

__all__ = ["filters", "runtime", "tests"]
