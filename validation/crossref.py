"""
KEYSTONE CROSS-REFERENCE VALIDATOR - Field Values Drawn From Other Blocks

A custom block field can declare that its values must appear in another
block type's field somewhere in the project:

    custom_block_types:
      drop:
        fields:
          item:
            ref: [{block_type: item, field: name}, {block_type: loot, field: id}]

Pass 1 collects, for every "block_type.field" pair, the string values seen
in any block of any node. Pass 2 checks each referencing field: a value is
valid if ANY of its targets contains it. Scalars and lists are both
checked. A target nobody has written yet has no values, so every value
pointing at it fails.
"""
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set

from core.schemas import BlockTypeConfig, Diagnostic, NodeData
from infrastructure.diagnostics import Collector
from infrastructure.suggestions import Suggester
from validation.base import GraphValidator, where


def collect_field_values(nodes: Iterable[NodeData]) -> Dict[str, Set[str]]:
    """Map each "block_type.field" pair to the string values observed for it."""
    values: Dict[str, Set[str]] = defaultdict(set)
    for node in nodes:
        if node.content is None:
            continue
        for section in node.content.sections:
            for block in section.blocks:
                for field, value in block.data.items():
                    if isinstance(value, str):
                        values[f"{block.type}.{field}"].add(value)
    return values


class CrossRefValidator(GraphValidator):

    name = "crossref"

    def __init__(self, custom_types: Dict[str, BlockTypeConfig], suggester: Optional[Suggester] = None):
        super().__init__()
        self.custom_types = custom_types
        self.suggester = suggester or Suggester()

    def validate_all(self, nodes: Iterable[NodeData], collector: Collector) -> None:
        nodes = list(nodes)
        if not any(f.refs for bt in self.custom_types.values() for f in bt.fields.values()):
            return
        values = collect_field_values(nodes)

        for node in nodes:
            if node.content is None:
                continue
            for si, section in enumerate(node.content.sections):
                for bi, block in enumerate(section.blocks):
                    config = self.custom_types.get(block.type)
                    if config is None:
                        continue
                    for field, field_def in config.fields.items():
                        if not field_def.refs or field not in block.data:
                            continue
                        path = f"content.sections[{si}].blocks[{bi}].{field}"
                        targets = [f"{r.block_type}.{r.field}" for r in field_def.refs]
                        raw = block.data[field]
                        items = raw if isinstance(raw, list) else [raw]
                        for k, item in enumerate(items):
                            if not isinstance(item, str):
                                continue
                            if any(item in values.get(t, ()) for t in targets):
                                continue
                            item_path = f"{path}[{k}]" if isinstance(raw, list) else path
                            self._report(node, block.type, field, item, targets, values,
                                         f'section "{section.name}"', f"block {bi}", item_path, collector)

    def _report(self, node, block_type, field, value, targets, values, section, block, path, collector) -> None:
        candidates: List[str] = sorted(set().union(*(values.get(t, set()) for t in targets)))
        best = self.suggester.best(value, candidates)
        collector.add(Diagnostic(
            code="E054",
            summary=(
                f'Cross-reference not found: {block_type} block field "{field}" contains "{value}" '
                f"which is not a known value (checked {', '.join(targets)})"
            ) + where(node, section, block),
            detail=f'in node "{node.id}", {section}, {block}',
            location=self.locate(node, path, value=True),
            suggestion=f"Did you mean '{best}'?" if best else "",
        ))
