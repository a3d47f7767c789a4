"""
KEYSTONE CORE - Central exports for core functionality.

This module provides access to:
- The node data model (NodeData, Block, Diagnostic, ProjectConfig)
- The in-memory node graph (NodeGraph)
- Dependency algorithms (cycle detection, topological order, reverse index)
"""

from core.schemas import (
    NodeData,
    Refs,
    RefLink,
    Block,
    Section,
    Content,
    Contract,
    Constraint,
    Reviewer,
    AuditEntry,
    Location,
    Diagnostic,
    RelatedNode,
    ProjectConfig,
)
from core.graph_db import (
    NodeGraph,
    GraphError,
    NodeNotFoundError,
    DuplicateNodeError,
    GraphInvariantError,
)
from core.graph_algorithms import (
    build_dependency_map,
    detect_cycle,
    topological_sort,
    build_reverse_index,
)

__all__ = [
    # Data model
    "NodeData",
    "Refs",
    "RefLink",
    "Block",
    "Section",
    "Content",
    "Contract",
    "Constraint",
    "Reviewer",
    "AuditEntry",
    "Location",
    "Diagnostic",
    "RelatedNode",
    "ProjectConfig",
    # Graph
    "NodeGraph",
    "GraphError",
    "NodeNotFoundError",
    "DuplicateNodeError",
    "GraphInvariantError",
    # Algorithms
    "build_dependency_map",
    "detect_cycle",
    "topological_sort",
    "build_reverse_index",
]
