"""
KEYSTONE BLOCK VALIDATOR - Typed Content Blocks

Built-in block types and their fields:

    rule      text*                      (+ id)
    table     columns*, rows*            (+ id)
    param     name*, datatype*           (+ id, min, max, default, unit, description)
    mechanic  name*, description*        (+ id, conditions, outputs, inputs)
    list      items*                     (+ id)

    * required

Custom block types come from the project config (required_fields,
optional_fields and typed `fields`). Config for a built-in type name adds
to the built-in rules rather than replacing them.

Table columns may only use key, type, enum and display, and must have a
key. When a column lacks `key` but has a field that looks like a typo of
it ("ky"), a single E049 names the typo instead of reporting both the
missing key and the unknown field.
"""
from typing import Any, Dict, List, Optional

from core.ontology import BUILTIN_BLOCK_FIELDS, BUILTIN_BLOCK_REQUIRED, TABLE_COLUMN_FIELDS
from core.schemas import Block, BlockTypeConfig, Diagnostic, NodeData
from infrastructure.diagnostics import Collector
from infrastructure.suggestions import Suggester
from validation.base import NodeValidator, where


def format_value(value: Any) -> str:
    if isinstance(value, str):
        if len(value) > 20:
            return f'"{value[:17]}"...'
        return f'"{value}"'
    return str(value)


def format_column_contents(column: Dict[str, Any]) -> str:
    """Brief "{key: "v", type: "t"}" rendering with long strings cut short."""
    if not column:
        return "{}"
    return "{" + ", ".join(f"{k}: {format_value(column[k])}" for k in sorted(column)) + "}"


class BlockValidator(NodeValidator):
    """Checks every block of every section of a node."""

    name = "blocks"

    def __init__(
        self,
        custom_types: Optional[Dict[str, BlockTypeConfig]] = None,
        suggester: Optional[Suggester] = None,
    ):
        super().__init__()
        self.custom_types = custom_types or {}
        self.suggester = suggester or Suggester()

    def known_types(self) -> List[str]:
        return sorted(set(BUILTIN_BLOCK_REQUIRED) | set(self.custom_types))

    def required_fields(self, block_type: str) -> List[str]:
        """Built-in required fields followed by any the config adds for the same type."""
        required = list(BUILTIN_BLOCK_REQUIRED.get(block_type, ()))
        config = self.custom_types.get(block_type)
        if config is not None:
            required.extend(f for f in config.effective_required() if f not in required)
        return required

    def allowed_fields(self, block_type: str) -> List[str]:
        allowed = set(BUILTIN_BLOCK_FIELDS.get(block_type, ()))
        config = self.custom_types.get(block_type)
        if config is not None:
            allowed |= {"id"} | set(config.effective_required()) | set(config.effective_optional())
        return sorted(allowed)

    def validate(self, node: NodeData, collector: Collector) -> None:
        if node.content is None:
            return
        for si, section in enumerate(node.content.sections):
            for bi, block in enumerate(section.blocks):
                self.validate_block(node, section.name, si, bi, block, collector)

    def validate_block(
        self,
        node: NodeData,
        section_name: str,
        si: int,
        bi: int,
        block: Block,
        collector: Collector,
    ) -> None:
        path = f"content.sections[{si}].blocks[{bi}]"
        detail = f'in node "{node.id}", section "{section_name}", block {bi}'
        suffix = where(node, f'section "{section_name}"', f"block {bi}")

        if not block.type:
            collector.add(Diagnostic(
                code="E048",
                summary="Block has no type" + suffix,
                detail=detail,
                location=self.locate(node, path),
            ))
            return

        if block.type not in BUILTIN_BLOCK_REQUIRED and block.type not in self.custom_types:
            best = self.suggester.best(block.type, self.known_types())
            collector.add(Diagnostic(
                code="E048",
                summary=f"Unknown block type: {block.type}" + suffix,
                detail=detail,
                location=self.locate(node, f"{path}.type", path, value=True),
                suggestion=f"Did you mean '{best}'?" if best else "Known types: " + ", ".join(self.known_types()),
            ))
            return

        for field in self.required_fields(block.type):
            if field not in block.data:
                collector.add(Diagnostic(
                    code="E047",
                    summary=f'Block type "{block.type}" missing required field: {field}' + suffix,
                    detail=detail,
                    location=self.locate(node),
                ))

        allowed = self.allowed_fields(block.type)
        for key in block.data:
            if key in allowed:
                continue
            best = self.suggester.best(key, allowed)
            collector.add(Diagnostic(
                code="E049",
                summary=f'Unknown field "{key}" in {block.type} block' + suffix,
                detail=detail,
                location=self.locate(node, f"{path}.{key}", path),
                suggestion=f"Did you mean '{best}'?" if best else "",
            ))

        if block.type in self.custom_types:
            self._check_enums(node, block, path, detail, suffix, collector)
        if block.type == "table":
            self._check_columns(node, block, path, detail, suffix, collector)

    def _check_enums(self, node, block, path, detail, suffix, collector) -> None:
        for name, field_def in self.custom_types[block.type].fields.items():
            value = block.data.get(name)
            if not field_def.enum or value is None:
                continue
            values = value if isinstance(value, list) else [value]
            for item in values:
                if str(item) in field_def.enum:
                    continue
                best = self.suggester.best(str(item), field_def.enum)
                collector.add(Diagnostic(
                    code="E043",
                    summary=f'Invalid value "{item}" for field "{name}"' + suffix,
                    detail=f"{detail}; allowed: {', '.join(field_def.enum)}",
                    location=self.locate(node, f"{path}.{name}", value=True),
                    suggestion=f"Did you mean '{best}'?" if best else "",
                ))

    def _check_columns(self, node, block, path, detail, suffix, collector) -> None:
        columns = block.data.get("columns")
        if not isinstance(columns, list):
            return
        allowed = sorted(TABLE_COLUMN_FIELDS)

        for ci, column in enumerate(columns):
            if not isinstance(column, dict):
                continue
            column_path = f"{path}.columns[{ci}]"
            contents = f"Column {ci} contains: {format_column_contents(column)}"

            unknown = []
            for key in sorted(column):
                if key not in TABLE_COLUMN_FIELDS:
                    unknown.append((key, self.suggester.best(key, allowed)))

            typo_for_key = ""
            if "key" not in column:
                typo_for_key = next((name for name, best in unknown if best == "key"), "")

            if typo_for_key:
                collector.add(Diagnostic(
                    code="E049",
                    summary=f'Unknown field "{typo_for_key}" in table column {ci} (did you mean "key"?)' + suffix,
                    detail=detail,
                    location=self.locate(node, f"{column_path}.{typo_for_key}", column_path),
                    context=[contents, 'This also causes: missing required field "key"'],
                ))
            elif "key" not in column:
                collector.add(Diagnostic(
                    code="E050",
                    summary=f"Table column {ci} missing required field: key" + suffix,
                    detail=detail,
                    location=self.locate(node, column_path),
                    context=[contents],
                ))

            for name, best in unknown:
                if name == typo_for_key:
                    continue
                collector.add(Diagnostic(
                    code="E049",
                    summary=f'Unknown table column field "{name}" in column {ci}' + suffix,
                    detail=detail,
                    location=self.locate(node, f"{column_path}.{name}", column_path),
                    context=[contents],
                    suggestion=f"Did you mean '{best}'?" if best else "",
                ))
