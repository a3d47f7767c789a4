"""
KEYSTONE GRAPH ALGORITHMS - Dependency Structure of the Node Graph

Derives dependency structures from a NodeGraph:
1. Dependency map: node -> the IDs it `uses`
2. Cycle detection: 3-state DFS that reports the cycle path
3. Topological order: dependencies before dependents, ties by insertion order
4. Reverse index: target -> nodes that reference it via `uses` or `related`

Only `uses` links are dependency edges. `related` links are informational
and appear only in the reverse index.

References to IDs that are not in the graph are kept in the dependency map
(they are the reference validator's business) but never affect ordering.
"""
import rustworkx as rx
from typing import Dict, List, Tuple

from core.graph_db import NodeGraph, GraphInvariantError
from core.schemas import NodeData, Diagnostic, RelatedNode


# =============================================================================
# DEPENDENCY MAP
# =============================================================================

def build_dependency_map(graph: NodeGraph) -> Dict[str, List[str]]:
    """
    Map every node ID to the targets of its `uses` links.

    Every node gets an entry, even when it uses nothing.
    """
    return {node.id: [link.target for link in node.refs.uses] for node in graph}


def build_dependency_digraph(graph: NodeGraph) -> Tuple[rx.PyDiGraph, Dict[str, int]]:
    """
    Build a rustworkx digraph with an edge dependency -> dependent.

    Node payloads are node IDs, added in insertion order. Edges to missing
    targets are skipped and repeated links collapse to one edge.

    Returns:
        (digraph, id -> index map)
    """
    dag = rx.PyDiGraph(multigraph=False)
    index: Dict[str, int] = {}
    for node_id in graph.ids():
        index[node_id] = dag.add_node(node_id)
    for node in graph:
        for link in node.refs.uses:
            dep_idx = index.get(link.target)
            if dep_idx is not None:
                dag.add_edge(dep_idx, index[node.id], "uses")
    return dag, index


# =============================================================================
# CYCLE DETECTION
# =============================================================================

UNVISITED, VISITING, VISITED = 0, 1, 2


def detect_cycle(graph: NodeGraph) -> Tuple[bool, List[str]]:
    """
    Find a dependency cycle, if any.

    Depth-first search with three states. Reaching a node that is still
    being visited closes a cycle; the returned path starts at that node and
    ends with it again, e.g. ["a", "b", "a"]. A node that uses itself gives
    ["a", "a"].

    Roots are tried in insertion order and links in declaration order, so
    the reported cycle is stable for a given graph.

    Returns:
        (has_cycle, cycle_path)
    """
    deps = build_dependency_map(graph)
    state: Dict[str, int] = {}

    for root in deps:
        if state.get(root, UNVISITED) != UNVISITED:
            continue
        state[root] = VISITING
        path = [root]
        stack = [iter(deps[root])]

        while stack:
            descended = False
            for target in stack[-1]:
                target_state = state.get(target, UNVISITED)
                if target_state == VISITING:
                    start = path.index(target)
                    return True, path[start:] + [target]
                if target_state == UNVISITED:
                    state[target] = VISITING
                    path.append(target)
                    stack.append(iter(deps.get(target, [])))
                    descended = True
                    break
            if not descended:
                state[path.pop()] = VISITED
                stack.pop()

    return False, []


def cycle_diagnostic(cycle: List[str]) -> Diagnostic:
    """Describe a cycle path as an E080 diagnostic."""
    return Diagnostic(
        code="E080",
        summary="Dependency cycle detected",
        detail=" -> ".join(cycle),
        related=[RelatedNode(node_id=node_id, reason="part of cycle") for node_id in dict.fromkeys(cycle)],
        suggestion="Remove one of the 'uses' links in the cycle",
    )


# =============================================================================
# TOPOLOGICAL ORDER
# =============================================================================

def topological_sort(graph: NodeGraph) -> List[NodeData]:
    """
    Order nodes so that every dependency precedes its dependents.

    Ties between nodes that are ready at the same time are broken by
    insertion order. Every node appears exactly once.

    Raises:
        GraphInvariantError: if the graph has a dependency cycle
    """
    has_cycle, cycle = detect_cycle(graph)
    if has_cycle:
        raise GraphInvariantError(
            f"cannot sort graph with cycle: {' -> '.join(cycle)}",
            diagnostic=cycle_diagnostic(cycle),
        )

    dag, index = build_dependency_digraph(graph)
    width = len(str(len(index)))
    order = rx.lexicographical_topological_sort(
        dag,
        key=lambda node_id: str(index[node_id]).zfill(width),
    )
    return [graph.get(node_id) for node_id in order]


# =============================================================================
# REVERSE INDEX
# =============================================================================

def build_reverse_index(graph: NodeGraph) -> Dict[str, List[str]]:
    """
    Map every node ID to the nodes that reference it.

    Both `uses` and `related` count. A source appears at most once per target
    even if it links the same target several times. Targets that are not in
    the graph are left out.
    """
    reverse: Dict[str, List[str]] = {node_id: [] for node_id in graph.ids()}
    for node in graph:
        seen = set()
        for target in node.reference_targets():
            if target in seen or target not in reverse:
                continue
            seen.add(target)
            reverse[target].append(node.id)
    return reverse
