"""
Unit tests for core/graph_algorithms.py

Covers dependency maps, cycle detection, topological ordering and the
reverse index.
"""
import unittest

import pytest

from core.graph_algorithms import (
    build_dependency_map,
    build_dependency_digraph,
    build_reverse_index,
    detect_cycle,
    topological_sort,
)
from core.graph_db import GraphInvariantError, NodeGraph
from core.schemas import NodeData, Refs, RefLink


def node(node_id, uses=(), related=()):
    return NodeData.create(
        id=node_id,
        kind="system",
        refs=Refs(uses=[RefLink(target=t) for t in uses], related=[RefLink(target=t) for t in related]),
    )


def graph_of(*nodes):
    return NodeGraph.from_nodes(nodes)


# =============================================================================
# DEPENDENCY MAP
# =============================================================================

class TestDependencyMap(unittest.TestCase):

    def test_every_node_has_entry(self):
        graph = graph_of(node("a"), node("b", uses=["a"]))
        self.assertEqual(build_dependency_map(graph), {"a": [], "b": ["a"]})

    def test_related_links_are_not_dependencies(self):
        graph = graph_of(node("a"), node("b", related=["a"]))
        self.assertEqual(build_dependency_map(graph)["b"], [])

    def test_missing_targets_are_kept(self):
        graph = graph_of(node("a", uses=["ghost"]))
        self.assertEqual(build_dependency_map(graph)["a"], ["ghost"])

    def test_digraph_skips_missing_targets(self):
        graph = graph_of(node("a", uses=["ghost"]), node("b", uses=["a", "a"]))
        dag, index = build_dependency_digraph(graph)
        self.assertEqual(dag.num_nodes(), 2)
        self.assertEqual(dag.num_edges(), 1)
        self.assertTrue(dag.has_edge(index["a"], index["b"]))


# =============================================================================
# CYCLE DETECTION
# =============================================================================

class TestDetectCycle(unittest.TestCase):

    def test_empty_graph_has_no_cycle(self):
        self.assertEqual(detect_cycle(NodeGraph()), (False, []))

    def test_chain_has_no_cycle(self):
        graph = graph_of(node("c", uses=["b"]), node("b", uses=["a"]), node("a"))
        self.assertEqual(detect_cycle(graph), (False, []))

    def test_two_node_cycle(self):
        graph = graph_of(node("a", uses=["b"]), node("b", uses=["a"]))
        has_cycle, path = detect_cycle(graph)
        self.assertTrue(has_cycle)
        self.assertEqual(path, ["a", "b", "a"])

    def test_self_reference_is_cycle(self):
        graph = graph_of(node("a", uses=["a"]))
        has_cycle, path = detect_cycle(graph)
        self.assertTrue(has_cycle)
        self.assertEqual(path, ["a", "a"])

    def test_cycle_path_starts_at_repeated_node(self):
        """root -> a -> b -> a reports only the cycle a -> b -> a."""
        graph = graph_of(node("root", uses=["a"]), node("a", uses=["b"]), node("b", uses=["a"]))
        has_cycle, path = detect_cycle(graph)
        self.assertTrue(has_cycle)
        self.assertEqual(path, ["a", "b", "a"])

    def test_diamond_is_not_cycle(self):
        graph = graph_of(
            node("top", uses=["left", "right"]),
            node("left", uses=["bottom"]),
            node("right", uses=["bottom"]),
            node("bottom"),
        )
        self.assertFalse(detect_cycle(graph)[0])

    def test_missing_target_is_not_cycle(self):
        graph = graph_of(node("a", uses=["ghost"]))
        self.assertFalse(detect_cycle(graph)[0])

    def test_long_chain_does_not_hit_recursion_limit(self):
        nodes = [node(f"n{i}", uses=[f"n{i + 1}"]) for i in range(3000)]
        nodes.append(node("n3000"))
        self.assertFalse(detect_cycle(graph_of(*nodes))[0])


# =============================================================================
# TOPOLOGICAL SORT
# =============================================================================

class TestTopologicalSort(unittest.TestCase):

    def test_dependencies_come_first(self):
        graph = graph_of(node("c", uses=["b"]), node("b", uses=["a"]), node("a"))
        order = [n.id for n in topological_sort(graph)]
        self.assertEqual(order, ["a", "b", "c"])

    def test_every_uses_edge_respected(self):
        graph = graph_of(
            node("app", uses=["ui", "core"]),
            node("ui", uses=["core"]),
            node("core"),
            node("docs", related=["app"]),
        )
        order = [n.id for n in topological_sort(graph)]
        position = {node_id: i for i, node_id in enumerate(order)}
        self.assertEqual(sorted(order), sorted(graph.ids()))
        for n in graph:
            for link in n.refs.uses:
                self.assertLess(position[link.target], position[n.id])

    def test_ties_follow_insertion_order(self):
        graph = graph_of(node("z"), node("a"), node("m"))
        self.assertEqual([n.id for n in topological_sort(graph)], ["z", "a", "m"])

    def test_dangling_dependency_does_not_drop_node(self):
        graph = graph_of(node("a", uses=["ghost"]), node("b", uses=["a"]))
        self.assertEqual([n.id for n in topological_sort(graph)], ["a", "b"])

    def test_cycle_raises(self):
        graph = graph_of(node("a", uses=["b"]), node("b", uses=["a"]))
        with self.assertRaises(GraphInvariantError) as ctx:
            topological_sort(graph)
        self.assertIn("cycle", str(ctx.exception))
        self.assertEqual(ctx.exception.diagnostic.code, "E080")

    def test_empty_graph(self):
        self.assertEqual(topological_sort(NodeGraph()), [])


# =============================================================================
# REVERSE INDEX
# =============================================================================

def test_reverse_index_collects_uses_and_related():
    graph = graph_of(node("a"), node("b", uses=["a"]), node("c", related=["a"]))
    reverse = build_reverse_index(graph)
    assert reverse == {"a": ["b", "c"], "b": [], "c": []}


def test_reverse_index_deduplicates_per_source():
    """A node linking the same target via uses and related appears once."""
    graph = graph_of(node("a"), node("b", uses=["a", "a"], related=["a"]))
    assert build_reverse_index(graph)["a"] == ["b"]


def test_reverse_index_ignores_missing_targets():
    graph = graph_of(node("a", uses=["ghost"]))
    reverse = build_reverse_index(graph)
    assert "ghost" not in reverse
    assert reverse == {"a": []}


@pytest.mark.parametrize("count", [1, 5, 50])
def test_reverse_index_has_entry_per_node(count):
    graph = graph_of(*[node(f"n{i}") for i in range(count)])
    assert len(build_reverse_index(graph)) == count
