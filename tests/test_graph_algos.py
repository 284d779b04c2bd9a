from __future__ import annotations

import pytest

from graph import DependencyCycleError, find_cycles, sort_by_dependencies


def test_sort_puts_dependencies_first() -> None:
    graph = {
        "page": ["layout", "card"],
        "layout": ["base"],
        "card": [],
        "base": [],
    }

    ordered = sort_by_dependencies(graph, ["page"])

    assert ordered == ["base", "layout", "card", "page"]
    for node, dependencies in graph.items():
        for dependency in dependencies:
            assert ordered.index(dependency) < ordered.index(node)


def test_sort_keeps_discovery_order_of_independent_entries() -> None:
    graph: dict[str, list[str]] = {"b": [], "a": [], "c": ["a"]}

    assert sort_by_dependencies(graph, ["b", "c"]) == ["b", "a", "c"]


def test_sort_includes_entries_missing_from_graph() -> None:
    assert sort_by_dependencies({}, ["lonely"]) == ["lonely"]


def test_sort_rejects_cycles() -> None:
    graph = {"a": ["b"], "b": ["c"], "c": ["a"], "d": []}

    with pytest.raises(DependencyCycleError) as excinfo:
        sort_by_dependencies(graph, ["d"])

    assert sorted(excinfo.value.members) == ["a", "b", "c"]
    assert "Circular template dependency" in str(excinfo.value)


def test_find_cycles_reports_self_loops() -> None:
    assert find_cycles({"a": ["a"], "b": []}) == [["a"]]
    assert find_cycles({"a": ["b"], "b": []}) == []


def test_two_template_cycle_names_both_members() -> None:
    graph = {"ping.html": ["pong.html"], "pong.html": ["ping.html"]}

    with pytest.raises(DependencyCycleError) as excinfo:
        sort_by_dependencies(graph, ["ping.html"])

    message = str(excinfo.value)
    assert "ping.html" in message
    assert "pong.html" in message
