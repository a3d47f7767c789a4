"""
KEYSTONE VALIDATION ORCHESTRATOR

Runs a composable list of validators over a node set and collects every
diagnostic they produce.

Presets:
- default():            schema, references, constraints
- from_config(config):  the full set, configured from the project
                        (adds duplicate IDs, unknown fields, kind rules,
                        content, approvals, blocks, cross-references,
                        contracts and dependency cycles)

validate_all() runs every validator and caps the collector at 1000
distinct diagnostics. validate_node() checks a single node in isolation:
only per-node validators run (cross-node checks need the whole graph) and
the cap is 100.

Usage:
    orchestrator = ValidationOrchestrator.from_config(config)
    collector = orchestrator.validate_all(node_store.load_all())
    if collector.has_errors():
        print(DiagnosticFormatter().format_multiple(collector.errors()))
"""
import logging
from typing import Iterable, List, Optional

from core.graph_db import NodeGraph
from core.schemas import NodeData, ProjectConfig
from infrastructure.diagnostics import Collector
from infrastructure.suggestions import Suggester
from validation.base import GraphValidator, NodeValidator
from validation.blocks import BlockValidator
from validation.constraints import ConstraintValidator
from validation.contracts import ContractValidator
from validation.crossref import CrossRefValidator
from validation.references import CycleValidator, ReferenceValidator
from validation.schema import (
    ApprovalValidator,
    ContentValidator,
    DuplicateIDValidator,
    SchemaRulesValidator,
    SchemaValidator,
    UnknownFieldValidator,
)

logger = logging.getLogger(__name__)

VALIDATE_ALL_LIMIT = 1000
VALIDATE_NODE_LIMIT = 100


class ValidationOrchestrator:

    def __init__(self, validators: Optional[List[NodeValidator]] = None):
        self.validators: List[NodeValidator] = list(validators) if validators is not None else []

    @classmethod
    def default(cls) -> "ValidationOrchestrator":
        suggester = Suggester()
        return cls([
            SchemaValidator(suggester),
            ReferenceValidator(suggester),
            ConstraintValidator(),
        ])

    @classmethod
    def from_config(cls, config: ProjectConfig) -> "ValidationOrchestrator":
        suggester = Suggester()
        return cls([
            SchemaValidator(suggester),
            DuplicateIDValidator(),
            UnknownFieldValidator(suggester),
            SchemaRulesValidator(config.schema_rules),
            ContentValidator(),
            ApprovalValidator(config.required_approvals),
            ReferenceValidator(suggester),
            CycleValidator(),
            ConstraintValidator(),
            BlockValidator(config.custom_block_types, suggester),
            CrossRefValidator(config.custom_block_types, suggester),
            ContractValidator(suggester),
        ])

    def add(self, validator: NodeValidator) -> "ValidationOrchestrator":
        self.validators.append(validator)
        return self

    def validate_all(self, nodes: Iterable[NodeData], collector: Optional[Collector] = None) -> Collector:
        """Run every validator over the node set (a NodeGraph or any iterable of nodes)."""
        if isinstance(nodes, NodeGraph):
            nodes = nodes.all()
        nodes = list(nodes)
        collector = collector if collector is not None else Collector(max_errors=VALIDATE_ALL_LIMIT)
        for validator in self.validators:
            validator.validate_all(nodes, collector)
        logger.debug(
            "Validated %d nodes with %d validators: %d diagnostic(s)",
            len(nodes), len(self.validators), collector.count,
        )
        return collector

    def validate_node(self, node: NodeData, collector: Optional[Collector] = None) -> Collector:
        """Run the per-node validators against one node."""
        collector = collector if collector is not None else Collector(max_errors=VALIDATE_NODE_LIMIT)
        for validator in self.validators:
            if isinstance(validator, GraphValidator):
                continue
            validator.validate(node, collector)
        return collector
