"""Template environment, canonical identifiers and dependency discovery."""

from discovery.canonicalizer import TemplateCanonicalizer, UnableToCanonicalizeTemplate
from discovery.dependencies import DependencyGraph, build_dependency_graph
from discovery.environment import build_environment, parse_template

__all__ = [
    "DependencyGraph",
    "TemplateCanonicalizer",
    "UnableToCanonicalizeTemplate",
    "build_dependency_graph",
    "build_environment",
    "parse_template",
]
