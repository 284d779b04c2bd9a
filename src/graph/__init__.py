"""Graph algorithms for template dependencies."""

from graph.algos import DependencyCycleError, find_cycles, sort_by_dependencies

__all__ = ["DependencyCycleError", "find_cycles", "sort_by_dependencies"]
