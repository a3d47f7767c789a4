"""
KEYSTONE VALIDATOR BASE

Two shapes of validator:
- NodeValidator: Checks one node at a time (validate); validate_all loops
- GraphValidator: Needs every node at once (references, duplicates, cycles)

Validators never stop at the first problem. Everything goes into the
Collector passed in.

Locations: when a node was loaded from a file, field paths are mapped to
lines through a LocationTracker built from the node's raw_content. Problems
about something missing point at the file only.
"""
from typing import Dict, Iterable, Optional, Tuple

from core.schemas import Location, NodeData
from infrastructure.diagnostics import Collector, DiagnosticError
from infrastructure.location import LocationTracker


def where(node: NodeData, *parts: str) -> str:
    """Suffix naming the node (and optional position) a diagnostic is about."""
    label = node.id or "<unnamed>"
    return f" (in {', '.join((label,) + parts)})"


class _LocationCache:
    """One LocationTracker per loaded file content."""

    def __init__(self):
        self._trackers: Dict[Tuple[str, str], Optional[LocationTracker]] = {}

    def tracker(self, node: NodeData) -> Optional[LocationTracker]:
        if not node.raw_content:
            return None
        key = (node.source_file, node.raw_content)
        if key not in self._trackers:
            try:
                self._trackers[key] = LocationTracker(node.raw_content, node.source_file)
            except DiagnosticError:
                # The node store already parsed this content; keep file-only locations
                self._trackers[key] = None
        return self._trackers[key]


class NodeValidator:
    """Base for validators that look at one node at a time."""

    name = "node"

    def __init__(self):
        self._locations = _LocationCache()

    def validate(self, node: NodeData, collector: Collector) -> None:
        raise NotImplementedError

    def validate_all(self, nodes: Iterable[NodeData], collector: Collector) -> None:
        for node in nodes:
            self.validate(node, collector)

    def locate(self, node: NodeData, *paths: str, value: bool = False) -> Optional[Location]:
        """
        Location of the first resolvable path, else of the node's file.

        Args:
            value: point at the value instead of the key
        """
        tracker = self._locations.tracker(node)
        if tracker is not None:
            for path in paths:
                loc = tracker.get_value_location(path) if value else tracker.get_location(path)
                if loc.line > 0:
                    return loc
        if node.source_file:
            return Location(file=node.source_file)
        return None


class GraphValidator(NodeValidator):
    """Base for validators that need the whole node set."""

    name = "graph"

    def validate(self, node: NodeData, collector: Collector) -> None:
        self.validate_all([node], collector)

    def validate_all(self, nodes: Iterable[NodeData], collector: Collector) -> None:
        raise NotImplementedError
