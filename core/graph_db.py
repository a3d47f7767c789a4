"""
KEYSTONE NODE GRAPH - The In-Memory Node Collection

Holds every loaded design node keyed by its ID and refuses to silently
overwrite one. The dependency structure between nodes is derived on demand
by core.graph_algorithms, because references may point at nodes that are
added later (or never).

Architecture (The Bridge Pattern):
  Python Layer (Business Logic)
  - Uses string IDs: "systems/combat", "items/sword"
  - Calls: graph.add(node), graph.get("systems/combat")

  Bridge Layer (This File)
  - _node_map: Dict[str, int]  (ID -> Index), insertion ordered
  - _inv_map: Dict[int, str]   (Index -> ID)

  Rust Layer (rustworkx.PyDiGraph)
  - Stores NodeData payloads at integer indices

Iteration follows insertion order, which makes every algorithm built on top
of the graph deterministic.
"""
import rustworkx as rx
from typing import Dict, List, Optional, Iterable, Iterator
import polars as pl

from core.schemas import NodeData, Diagnostic


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================

class GraphError(Exception):
    """Base exception for graph operations."""
    pass


class NodeNotFoundError(GraphError):
    """Raised when a node ID is not in the graph."""
    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node not found: {node_id}")


class DuplicateNodeError(GraphError):
    """Raised when attempting to add a node with existing ID."""
    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node already exists: {node_id}")


class GraphInvariantError(GraphError):
    """Raised when a graph invariant is violated (cycles, etc.)."""
    def __init__(self, message: str, diagnostic: Optional[Diagnostic] = None):
        self.diagnostic = diagnostic
        super().__init__(message)


# =============================================================================
# NODE GRAPH
# =============================================================================

class NodeGraph:
    """
    In-memory collection of design nodes backed by rustworkx.

    Usage:
        graph = NodeGraph()
        graph.add(NodeData.create(id="systems/combat", kind="system"))
        node = graph.get("systems/combat")

        for node in graph:
            print(node.id)
    """

    def __init__(self):
        self._graph: rx.PyDiGraph = rx.PyDiGraph(multigraph=False)
        self._node_map: Dict[str, int] = {}
        self._inv_map: Dict[int, str] = {}

    @classmethod
    def from_nodes(cls, nodes: Iterable[NodeData]) -> "NodeGraph":
        """
        Build a graph from loaded nodes.

        Raises:
            DuplicateNodeError: on the first repeated ID
        """
        graph = cls()
        for node in nodes:
            graph.add(node)
        return graph

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def node_count(self) -> int:
        return len(self._node_map)

    @property
    def is_empty(self) -> bool:
        return not self._node_map

    # =========================================================================
    # NODE OPERATIONS
    # =========================================================================

    def add(self, node: NodeData) -> int:
        """
        Add a node.

        Returns:
            The internal index of the node

        Raises:
            DuplicateNodeError: If a node with this ID already exists
        """
        if node.id in self._node_map:
            raise DuplicateNodeError(node.id)
        idx = self._graph.add_node(node)
        self._node_map[node.id] = idx
        self._inv_map[idx] = node.id
        return idx

    def update(self, node: NodeData) -> None:
        """
        Replace the stored node that has the same ID.

        Raises:
            NodeNotFoundError: If the ID is not present
        """
        idx = self._get_index(node.id)
        self._graph[idx] = node

    def remove(self, node_id: str) -> NodeData:
        """
        Remove a node and return it.

        Raises:
            NodeNotFoundError: If the ID is not present
        """
        idx = self._get_index(node_id)
        node = self._graph[idx]
        self._graph.remove_node(idx)
        del self._node_map[node_id]
        del self._inv_map[idx]
        return node

    def get(self, node_id: str) -> NodeData:
        """
        Raises:
            NodeNotFoundError: If the ID is not present
        """
        return self._graph[self._get_index(node_id)]

    def find(self, node_id: str) -> Optional[NodeData]:
        """Like get(), but returns None for a missing ID."""
        idx = self._node_map.get(node_id)
        return None if idx is None else self._graph[idx]

    def has_node(self, node_id: str) -> bool:
        return node_id in self._node_map

    def ids(self) -> List[str]:
        """Node IDs in insertion order."""
        return list(self._node_map)

    def all(self) -> List[NodeData]:
        """Nodes in insertion order."""
        return [self._graph[idx] for idx in self._node_map.values()]

    def find_nodes(self, kind: Optional[str] = None, status: Optional[str] = None) -> List[NodeData]:
        """Nodes filtered by kind and/or status."""
        return [
            node for node in self
            if (kind is None or node.kind == kind)
            and (status is None or node.status == status)
        ]

    def _get_index(self, node_id: str) -> int:
        idx = self._node_map.get(node_id)
        if idx is None:
            raise NodeNotFoundError(node_id)
        return idx

    # =========================================================================
    # EXPORT (Polars)
    # =========================================================================

    def to_polars_nodes(self) -> pl.DataFrame:
        """One row per node: identity, lifecycle and reference counts."""
        nodes = self.all()
        return pl.DataFrame(
            {
                "id": [n.id for n in nodes],
                "kind": [n.kind for n in nodes],
                "version": [n.version for n in nodes],
                "status": [n.status for n in nodes],
                "title": [n.title for n in nodes],
                "uses": [len(n.refs.uses) for n in nodes],
                "related": [len(n.refs.related) for n in nodes],
            },
            schema={
                "id": pl.Utf8,
                "kind": pl.Utf8,
                "version": pl.Int64,
                "status": pl.Utf8,
                "title": pl.Utf8,
                "uses": pl.Int64,
                "related": pl.Int64,
            },
        )

    def to_polars_edges(self) -> pl.DataFrame:
        """
        One row per declared reference.

        `exists` is False for references whose target is not in the graph.
        """
        sources, targets, relations, exists = [], [], [], []
        for node in self:
            for relation, links in (("uses", node.refs.uses), ("related", node.refs.related)):
                for link in links:
                    sources.append(node.id)
                    targets.append(link.target)
                    relations.append(relation)
                    exists.append(link.target in self._node_map)
        return pl.DataFrame(
            {"source": sources, "target": targets, "relation": relations, "exists": exists},
            schema={"source": pl.Utf8, "target": pl.Utf8, "relation": pl.Utf8, "exists": pl.Boolean},
        )

    # =========================================================================
    # DUNDER METHODS
    # =========================================================================

    def __len__(self) -> int:
        return self.node_count

    def __contains__(self, node_id: str) -> bool:
        return self.has_node(node_id)

    def __iter__(self) -> Iterator[NodeData]:
        return iter(self.all())

    def __repr__(self) -> str:
        return f"NodeGraph(nodes={self.node_count})"
