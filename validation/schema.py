"""
KEYSTONE SCHEMA VALIDATORS - Node Structure

- SchemaValidator: id, kind, version, status and title are present and sane
- SchemaRulesValidator: per-kind required custom fields from the config
- ContentValidator: approved nodes carry content
- ApprovalValidator: approved nodes carry enough reviewer approvals
- DuplicateIDValidator: no two nodes share an ID
- UnknownFieldValidator: no unexpected top-level keys in node files
"""
from collections import Counter
from typing import Dict, Iterable, Optional

import yaml

from core.ontology import CONTENT_REQUIRED_STATUSES, KNOWN_NODE_KEYS, VALID_STATUSES, NodeStatus
from core.schemas import Diagnostic, NodeData, RelatedNode, SchemaRule
from infrastructure.diagnostics import Collector
from infrastructure.suggestions import Suggester
from validation.base import GraphValidator, NodeValidator, where


class SchemaValidator(NodeValidator):
    """One E008 per missing required field; E012 for an unknown status."""

    name = "schema"

    def __init__(self, suggester: Optional[Suggester] = None):
        super().__init__()
        self.suggester = suggester or Suggester()

    def validate(self, node: NodeData, collector: Collector) -> None:
        missing = []
        if not node.id:
            missing.append("id")
        if not node.kind:
            missing.append("kind")
        if node.version <= 0:
            missing.append("version")
        if not node.status:
            missing.append("status")
        if not node.title:
            missing.append("title")

        for field in missing:
            collector.add(Diagnostic(
                code="E008",
                summary=f"Missing required field: {field}" + where(node),
                detail="version must be a positive integer" if field == "version" else f"every node needs a {field}",
                location=self.locate(node),
            ))

        if node.status and node.status not in VALID_STATUSES:
            best = self.suggester.best(node.status, sorted(VALID_STATUSES))
            suggestion = f"Did you mean '{best}'?" if best else "Valid statuses: " + ", ".join(s.value for s in NodeStatus)
            collector.add(Diagnostic(
                code="E012",
                summary=f"Invalid status: {node.status}" + where(node),
                location=self.locate(node, "status", value=True),
                suggestion=suggestion,
            ))


class SchemaRulesValidator(NodeValidator):
    """Nodes of a configured kind must carry the kind's required custom fields."""

    name = "schema_rules"

    def __init__(self, rules: Dict[str, SchemaRule]):
        super().__init__()
        self.rules = rules

    def validate(self, node: NodeData, collector: Collector) -> None:
        rule = self.rules.get(node.kind)
        if rule is None:
            return
        for field in rule.required_fields:
            if field in node.custom:
                continue
            collector.add(Diagnostic(
                code="E051",
                summary=f"Missing required field '{field}' for kind '{node.kind}'" + where(node),
                detail=f"nodes of kind {node.kind!r} need custom.{field}",
                location=self.locate(node, "custom"),
            ))


class ContentValidator(NodeValidator):
    """Approved (or published) nodes need at least one content section."""

    name = "content"

    def validate(self, node: NodeData, collector: Collector) -> None:
        if node.status not in CONTENT_REQUIRED_STATUSES:
            return
        if node.content is not None and node.content.sections:
            return
        collector.add(Diagnostic(
            code="E046",
            summary="Content required" + where(node),
            detail=f"a node with status {node.status!r} must have content sections",
            location=self.locate(node, "status"),
        ))


class ApprovalValidator(NodeValidator):
    """Approved nodes need `required_approvals` reviewers for their current version."""

    name = "approval"

    def __init__(self, required_approvals: int = 1):
        super().__init__()
        self.required_approvals = required_approvals

    def validate(self, node: NodeData, collector: Collector) -> None:
        if node.status != NodeStatus.APPROVED.value:
            return
        have = node.approvals_for_version()
        if have >= self.required_approvals:
            return
        collector.add(Diagnostic(
            code="E052",
            summary="Insufficient approvals" + where(node),
            detail=f"version {node.version} has {have} approval(s), {self.required_approvals} required",
            location=self.locate(node, "status"),
            suggestion="Ask a reviewer to approve the current version",
        ))


class DuplicateIDValidator(GraphValidator):
    """Each repeated ID after the first occurrence is reported."""

    name = "duplicates"

    def validate_all(self, nodes: Iterable[NodeData], collector: Collector) -> None:
        nodes = list(nodes)
        counts = Counter(n.id for n in nodes if n.id)
        first: Dict[str, NodeData] = {}
        for node in nodes:
            if not node.id or counts[node.id] < 2:
                continue
            if node.id not in first:
                first[node.id] = node
                continue
            original = first[node.id]
            collector.add(Diagnostic(
                code="E006",
                summary=f"Duplicate node ID: {node.id}",
                detail=f"also defined in {original.source_file or 'another node'}",
                location=self.locate(node, "id"),
                related=[RelatedNode(node_id=original.id, reason="first definition")],
            ))


class UnknownFieldValidator(NodeValidator):
    """Top-level keys in a node file that the model does not know."""

    name = "unknown_fields"

    def __init__(self, suggester: Optional[Suggester] = None):
        super().__init__()
        self.suggester = suggester or Suggester()

    def validate(self, node: NodeData, collector: Collector) -> None:
        if not node.raw_content:
            return
        try:
            doc = yaml.safe_load(node.raw_content)
        except yaml.YAMLError:
            # Parse errors are reported by the node store
            return
        if not isinstance(doc, dict):
            return
        for key in doc:
            key = str(key)
            if key in KNOWN_NODE_KEYS:
                continue
            best = self.suggester.best(key, KNOWN_NODE_KEYS)
            collector.add(Diagnostic(
                code="E010",
                summary=f"Unknown field: {key}" + where(node),
                location=self.locate(node, key),
                suggestion=f"Did you mean '{best}'?" if best else "",
            ))
