"""
KEYSTONE VALIDATION - Structural, Referential and Semantic Checks

- schema: required fields, statuses, kind rules, content, approvals, duplicates
- references: link targets exist, no dependency cycles
- constraints: CEL expressions declared on nodes
- blocks: typed content blocks and table columns
- crossref: block field values drawn from other blocks
- contracts: given/when/then scenarios
- orchestrator: runs a set of validators into one Collector
"""

from validation.base import NodeValidator, GraphValidator
from validation.schema import (
    SchemaValidator,
    SchemaRulesValidator,
    ContentValidator,
    ApprovalValidator,
    DuplicateIDValidator,
    UnknownFieldValidator,
)
from validation.references import ReferenceValidator, CycleValidator
from validation.constraints import ConstraintValidator
from validation.blocks import BlockValidator
from validation.crossref import CrossRefValidator
from validation.contracts import ContractValidator
from validation.orchestrator import ValidationOrchestrator

__all__ = [
    "NodeValidator",
    "GraphValidator",
    "SchemaValidator",
    "SchemaRulesValidator",
    "ContentValidator",
    "ApprovalValidator",
    "DuplicateIDValidator",
    "UnknownFieldValidator",
    "ReferenceValidator",
    "CycleValidator",
    "ConstraintValidator",
    "BlockValidator",
    "CrossRefValidator",
    "ContractValidator",
    "ValidationOrchestrator",
]
