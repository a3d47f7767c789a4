"""
KEYSTONE REFERENCE VALIDATORS - Links Between Nodes

- ReferenceValidator: every `uses` and `related` target names an existing node
- CycleValidator: `uses` links form no dependency cycle
"""
from typing import Iterable, List, Optional

from core.graph_algorithms import cycle_diagnostic, detect_cycle
from core.graph_db import NodeGraph
from core.schemas import Diagnostic, NodeData
from infrastructure.diagnostics import Collector
from infrastructure.suggestions import Suggester
from validation.base import GraphValidator, where


class ReferenceValidator(GraphValidator):
    """
    Whole-graph existence check for references.

    Missing targets are E020 with the closest existing ID as a hint; an empty
    target is E022.
    """

    name = "references"

    def __init__(self, suggester: Optional[Suggester] = None):
        super().__init__()
        self.suggester = suggester or Suggester()

    def validate_all(self, nodes: Iterable[NodeData], collector: Collector) -> None:
        nodes = list(nodes)
        known: List[str] = [n.id for n in nodes if n.id]
        known_set = set(known)

        for node in nodes:
            for relation, links in (("uses", node.refs.uses), ("related", node.refs.related)):
                for i, link in enumerate(links):
                    path = f"refs.{relation}[{i}]"
                    if not link.target:
                        collector.add(Diagnostic(
                            code="E022",
                            summary="Invalid reference format" + where(node, path),
                            detail="reference target is empty",
                            location=self.locate(node, f"{path}.target", path),
                        ))
                        continue
                    if link.target in known_set:
                        continue
                    best = self.suggester.best(link.target, known)
                    collector.add(Diagnostic(
                        code="E020",
                        summary=f"Reference not found: {link.target}" + where(node),
                        detail=f"Referenced node '{link.target}' does not exist",
                        location=self.locate(node, f"{path}.target", path, value=True),
                        suggestion=f"Did you mean '{best}'?" if best else "",
                    ))


class CycleValidator(GraphValidator):
    """Reports one dependency cycle (E080), if any exists."""

    name = "cycles"

    def validate_all(self, nodes: Iterable[NodeData], collector: Collector) -> None:
        graph = NodeGraph()
        for node in nodes:
            # Duplicates are the duplicate-ID validator's business
            if node.id and not graph.has_node(node.id):
                graph.add(node)
        has_cycle, cycle = detect_cycle(graph)
        if has_cycle:
            diag = cycle_diagnostic(cycle)
            first = graph.get(cycle[0])
            diag.location = self.locate(first, "refs.uses")
            collector.add(diag)
