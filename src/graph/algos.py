"""Graph algorithms for template dependency graphs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

N = TypeVar("N")


class DependencyCycleError(Exception):
    """Raised when templates depend on each other cyclically."""

    def __init__(self, cycles: Sequence[Sequence[object]]) -> None:
        self.cycles = [list(cycle) for cycle in cycles]
        rendered = "; ".join(
            " -> ".join(str(member) for member in cycle) for cycle in self.cycles
        )
        super().__init__(f"Circular template dependency detected: {rendered}")

    @property
    def members(self) -> list[object]:
        return [member for cycle in self.cycles for member in cycle]


class _TarjanState(Generic[N]):
    """Mutable state container for Tarjan's SCC algorithm."""

    def __init__(self) -> None:
        self.index = 0
        self.indices: dict[N, int] = {}
        self.low_link: dict[N, int] = {}
        self.on_stack: set[N] = set()
        self.stack: list[N] = []
        self.sccs: list[list[N]] = []


def _extract_scc(state: _TarjanState[N], root: N) -> list[N]:
    """Extract a strongly connected component from the stack."""
    scc: list[N] = []
    while state.stack:
        w = state.stack.pop()
        state.on_stack.remove(w)
        scc.append(w)
        if w == root:
            break
    if root not in scc:
        msg = (
            f"Tarjan algorithm invariant violated: root node {root!r} "
            "not found in stack during SCC extraction."
        )
        raise RuntimeError(msg)
    return scc


def _strongconnect(
    node: N, graph: Mapping[N, Iterable[N]], state: _TarjanState[N]
) -> None:
    """Process a node in Tarjan's algorithm."""
    state.indices[node] = state.index
    state.low_link[node] = state.index
    state.index += 1
    state.stack.append(node)
    state.on_stack.add(node)

    neighbors = list(graph.get(node, ()))
    for neighbor in neighbors:
        if neighbor not in state.indices:
            _strongconnect(neighbor, graph, state)
            state.low_link[node] = min(state.low_link[node], state.low_link[neighbor])
        elif neighbor in state.on_stack:
            state.low_link[node] = min(state.low_link[node], state.indices[neighbor])

    if state.low_link[node] == state.indices[node]:
        scc = _extract_scc(state, node)
        if len(scc) > 1 or node in neighbors:
            scc.reverse()
            state.sccs.append(scc)


def find_cycles(graph: Mapping[N, Iterable[N]]) -> list[list[N]]:
    """Find cycles in a directed graph using Tarjan's algorithm.

    Args:
        graph: Mapping of node -> nodes it points to

    Returns:
        List of cycles, where each cycle is a list of nodes (a strongly
        connected component with more than one member, or a self-loop)
    """
    state: _TarjanState[N] = _TarjanState()

    for node in graph:
        if node not in state.indices:
            _strongconnect(node, graph, state)

    return state.sccs


def sort_by_dependencies(
    graph: Mapping[N, Sequence[N]],
    entries: Sequence[N] = (),
) -> list[N]:
    """Order nodes so that every dependency precedes its dependents.

    Every node of ``graph`` (and every entry) appears exactly once. Nodes are
    visited depth-first, starting from ``entries`` and then the graph's own
    iteration order, and each node's dependencies in their recorded order, so
    independent nodes keep their first-discovery order.

    Raises:
        DependencyCycleError: If the graph contains a cycle. No partial
            ordering is returned.
    """
    cycles = find_cycles(graph)
    if cycles:
        raise DependencyCycleError(cycles)

    ordered: list[N] = []
    emitted: set[N] = set()

    for start in [*entries, *graph]:
        if start in emitted:
            continue
        # Iterative post-order DFS; the graph is acyclic at this point.
        stack: list[tuple[N, int]] = [(start, 0)]
        on_path: set[N] = {start}
        while stack:
            node, next_index = stack[-1]
            dependencies = graph.get(node, ())
            if next_index < len(dependencies):
                stack[-1] = (node, next_index + 1)
                dependency = dependencies[next_index]
                if dependency not in emitted and dependency not in on_path:
                    on_path.add(dependency)
                    stack.append((dependency, 0))
                continue
            stack.pop()
            on_path.discard(node)
            if node not in emitted:
                emitted.add(node)
                ordered.append(node)

    return ordered


__all__ = [
    "DependencyCycleError",
    "_TarjanState",
    "_extract_scc",
    "_strongconnect",
    "find_cycles",
    "sort_by_dependencies",
]
