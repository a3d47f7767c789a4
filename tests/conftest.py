"""
Pytest configuration and shared fixtures for Keystone test suite.
"""
import sys
from pathlib import Path

import pytest
import yaml

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


@pytest.fixture
def fresh_graph():
    """Provide an empty NodeGraph."""
    from core.graph_db import NodeGraph
    return NodeGraph()


@pytest.fixture
def make_node():
    """Factory for valid draft nodes with optional uses/related links."""
    from core.schemas import NodeData, Refs, RefLink

    def _make(node_id, kind="system", uses=(), related=(), **kwargs):
        refs = Refs(
            uses=[RefLink(target=t) for t in uses],
            related=[RefLink(target=t) for t in related],
        )
        return NodeData.create(id=node_id, kind=kind, title=kwargs.pop("title", node_id.title()), refs=refs, **kwargs)

    return _make


@pytest.fixture
def graph_with_chain(fresh_graph, make_node):
    """c uses b, b uses a."""
    fresh_graph.add(make_node("c", uses=["b"]))
    fresh_graph.add(make_node("b", uses=["a"]))
    fresh_graph.add(make_node("a"))
    return fresh_graph


def write_yaml(path: Path, data) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    return path


@pytest.fixture
def project_dir(tmp_path):
    """
    A project on disk with a config, a custom block type and two nodes.

    Layout:
        .keystone/config.yaml
        .keystone/nodes/systems/combat.yaml
        .keystone/nodes/items/sword.yaml   (uses systems/combat)
    """
    write_yaml(tmp_path / ".keystone" / "config.yaml", {
        "project_name": "demo",
        "custom_block_types": {
            "drop": {"required_fields": ["item"], "optional_fields": ["chance"]},
        },
    })
    nodes = tmp_path / ".keystone" / "nodes"
    write_yaml(nodes / "systems" / "combat.yaml", {
        "id": "systems/combat",
        "kind": "system",
        "version": 1,
        "status": "draft",
        "title": "Combat",
    })
    write_yaml(nodes / "items" / "sword.yaml", {
        "id": "items/sword",
        "kind": "item",
        "version": 2,
        "status": "draft",
        "title": "Sword",
        "refs": {"uses": [{"target": "systems/combat"}]},
    })
    return tmp_path
