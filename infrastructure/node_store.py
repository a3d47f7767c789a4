"""
KEYSTONE NODE STORE - Design Nodes as YAML Files

One file per node under the nodes directory; the node ID is the relative
path without extension:

    <nodes_dir>/systems/combat.yaml   ->   id "systems/combat"

Loaded nodes remember their file (source_file) and original text
(raw_content) so validators can map field paths to line numbers.
"""
import logging
from pathlib import Path
from typing import List, Union

import msgspec
import yaml

from core.schemas import Diagnostic, Location, NodeData, node_from_document, node_to_document
from infrastructure.diagnostics import StoreError

logger = logging.getLogger(__name__)

NODE_SUFFIX = ".yaml"


class YamlNodeStore:
    """
    File-based node store.

    Usage:
        store = YamlNodeStore(project_root / ".keystone" / "nodes")
        for node in store.load_all():
            ...
        store.save(node)
    """

    def __init__(self, nodes_dir: Union[str, Path]):
        self.nodes_dir = Path(nodes_dir)

    def path_for(self, node_id: str) -> Path:
        if not node_id or node_id.startswith("/") or ".." in node_id.split("/"):
            raise ValueError(f"invalid node ID for storage: {node_id!r}")
        return self.nodes_dir / f"{node_id}{NODE_SUFFIX}"

    def exists(self, node_id: str) -> bool:
        return self.path_for(node_id).exists()

    def load_all(self) -> List[NodeData]:
        """All nodes, ordered by file path. A missing directory means no nodes."""
        if not self.nodes_dir.exists():
            return []
        nodes = [self.load_file(path) for path in sorted(self.nodes_dir.rglob(f"*{NODE_SUFFIX}"))]
        logger.debug("Loaded %d nodes from %s", len(nodes), self.nodes_dir)
        return nodes

    def load(self, node_id: str) -> NodeData:
        """
        Raises:
            StoreError: E001 if no file exists for the ID
        """
        path = self.path_for(node_id)
        if not path.exists():
            raise StoreError(Diagnostic(
                code="E001",
                summary=f"Node not found: {node_id}",
                detail=f"No file at {path}",
            ))
        return self.load_file(path)

    def load_file(self, path: Union[str, Path]) -> NodeData:
        """
        Parse one node file.

        Raises:
            StoreError: E061 unreadable, E066 bad YAML, E007 not a mapping,
                E009 wrong field types
        """
        path = Path(path)
        location = Location(file=str(path))
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise StoreError(Diagnostic(code="E061", summary="File read error", detail=str(e), location=location)) from e

        try:
            doc = yaml.safe_load(text)
        except yaml.YAMLError as e:
            mark = getattr(e, "problem_mark", None)
            if mark is not None:
                location = Location(file=str(path), line=mark.line + 1, column=mark.column + 1)
            raise StoreError(Diagnostic(code="E066", summary="YAML parse error", detail=str(e), location=location)) from e

        if not isinstance(doc, dict):
            raise StoreError(Diagnostic(
                code="E007",
                summary="Invalid node structure",
                detail="a node file must contain a mapping",
                location=location,
            ))
        try:
            return node_from_document(doc, source_file=str(path), raw_content=text)
        except msgspec.ValidationError as e:
            raise StoreError(Diagnostic(code="E009", summary="Invalid field type", detail=str(e), location=location)) from e

    def save(self, node: NodeData) -> Path:
        path = self.path_for(node.id)
        path.parent.mkdir(parents=True, exist_ok=True)
        text = yaml.safe_dump(node_to_document(node), sort_keys=False, allow_unicode=True)
        try:
            path.write_text(text, encoding="utf-8")
        except OSError as e:
            raise StoreError(Diagnostic(
                code="E062",
                summary="File write error",
                detail=str(e),
                location=Location(file=str(path)),
            )) from e
        logger.debug("Saved node %s to %s", node.id, path)
        return path

    def delete(self, node_id: str) -> None:
        """
        Raises:
            StoreError: E001 if no file exists for the ID
        """
        path = self.path_for(node_id)
        if not path.exists():
            raise StoreError(Diagnostic(code="E001", summary=f"Node not found: {node_id}"))
        path.unlink()
        logger.debug("Deleted node %s", node_id)
