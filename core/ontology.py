"""
KEYSTONE ONTOLOGY - The Dictionary of the System

If schemas.py is the Grammar (how we structure documents),
ontology.py is the Dictionary (the words we can use).

This module defines:
- Enums: The vocabulary (NodeStatus, AuditOperation, IssueSeverity, StepType)
- Built-in block types and the top-level keys a node file may carry
- The error code registry: every diagnostic code, its category and message

Error codes are grouped by range so a code alone tells you which layer
produced it:
    E001-E019  schema      (node structure, required fields)
    E020-E039  refs        (references between nodes)
    E040-E059  validation  (constraints, blocks, approvals)
    E060-E079  io          (files, YAML, backups)
    E080-E099  graph       (cycles, membership)
    E100-E119  contract    (given/when/then scenarios)
"""
from typing import Dict, List, Optional, FrozenSet, Tuple
from enum import Enum

import msgspec


# =============================================================================
# ENUMS (The Vocabulary)
# =============================================================================

class NodeStatus(str, Enum):
    """Lifecycle status of a design node."""
    DRAFT = "draft"
    REVIEW = "review"
    APPROVED = "approved"
    DEPRECATED = "deprecated"
    ARCHIVED = "archived"


class AuditOperation(str, Enum):
    """Operations recorded in the audit history."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    SET = "set"
    APPEND = "append"
    UNSET = "unset"
    MOVE = "move"
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    SYNC = "sync"
    BASELINE = "baseline"
    MIGRATE = "migrate"
    REWRITE = "rewrite"


class IssueSeverity(str, Enum):
    """Severity of an open question attached to a node."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class StepType(str, Enum):
    """Phase of a contract scenario step."""
    GIVEN = "given"
    WHEN = "when"
    THEN = "then"


class ErrorCategory(str, Enum):
    """Diagnostic code families."""
    SCHEMA = "schema"
    REFS = "refs"
    VALIDATION = "validation"
    IO = "io"
    GRAPH = "graph"
    CONTRACT = "contract"


# =============================================================================
# VOCABULARY SETS
# =============================================================================

VALID_STATUSES: FrozenSet[str] = frozenset(s.value for s in NodeStatus)

# Statuses that require a node to carry content and reviewer approvals.
# "published" is accepted for older projects that used it before "approved".
CONTENT_REQUIRED_STATUSES: FrozenSet[str] = frozenset({"approved", "published"})

# Top-level keys a node file may contain. Anything else is flagged.
KNOWN_NODE_KEYS: Tuple[str, ...] = (
    "id", "kind", "version", "status", "title", "tags", "refs", "content",
    "issues", "docs", "summary", "glossary", "contracts", "llm_context",
    "constraints", "reviewers", "custom",
)

# Built-in block types: required fields and the full set of allowed fields.
BUILTIN_BLOCK_REQUIRED: Dict[str, Tuple[str, ...]] = {
    "rule": ("text",),
    "table": ("columns", "rows"),
    "param": ("name", "datatype"),
    "mechanic": ("name", "description"),
    "list": ("items",),
}

BUILTIN_BLOCK_FIELDS: Dict[str, FrozenSet[str]] = {
    "rule": frozenset({"id", "text"}),
    "table": frozenset({"id", "columns", "rows"}),
    "param": frozenset({"id", "name", "datatype", "min", "max", "default", "unit", "description"}),
    "mechanic": frozenset({"id", "name", "description", "conditions", "outputs", "inputs"}),
    "list": frozenset({"id", "items"}),
}

TABLE_COLUMN_FIELDS: FrozenSet[str] = frozenset({"key", "type", "enum", "display"})


# =============================================================================
# ERROR CODE REGISTRY
# =============================================================================

class ErrorCode(msgspec.Struct, kw_only=True, frozen=True):
    """A registered diagnostic code."""
    code: str
    category: str
    message: str


_CODE_TABLE: List[Tuple[str, ErrorCategory, str]] = [
    # Schema
    ("E001", ErrorCategory.SCHEMA, "Node not found"),
    ("E002", ErrorCategory.SCHEMA, "Invalid reference"),
    ("E003", ErrorCategory.SCHEMA, "Invalid schema"),
    ("E004", ErrorCategory.SCHEMA, "Circular dependency"),
    ("E005", ErrorCategory.SCHEMA, "Invalid node kind"),
    ("E006", ErrorCategory.SCHEMA, "Duplicate node ID"),
    ("E007", ErrorCategory.SCHEMA, "Invalid node structure"),
    ("E008", ErrorCategory.SCHEMA, "Missing required field"),
    ("E009", ErrorCategory.SCHEMA, "Invalid field type"),
    ("E010", ErrorCategory.SCHEMA, "Unknown field"),
    ("E011", ErrorCategory.SCHEMA, "Unsupported schema version"),
    ("E012", ErrorCategory.SCHEMA, "Invalid status value"),
    ("E013", ErrorCategory.SCHEMA, "Migration failed"),
    ("E014", ErrorCategory.SCHEMA, "Duplicate migration"),
    # References
    ("E020", ErrorCategory.REFS, "Reference not found"),
    ("E021", ErrorCategory.REFS, "Dangling reference"),
    ("E022", ErrorCategory.REFS, "Invalid reference format"),
    ("E023", ErrorCategory.REFS, "Circular reference"),
    ("E024", ErrorCategory.REFS, "Ambiguous reference"),
    ("E025", ErrorCategory.REFS, "Reference type mismatch"),
    # Validation
    ("E040", ErrorCategory.VALIDATION, "Validation failed"),
    ("E041", ErrorCategory.VALIDATION, "Constraint violation"),
    ("E042", ErrorCategory.VALIDATION, "Constraint expression error"),
    ("E043", ErrorCategory.VALIDATION, "Invalid value"),
    ("E044", ErrorCategory.VALIDATION, "Value out of range"),
    ("E045", ErrorCategory.VALIDATION, "Type constraint violation"),
    ("E046", ErrorCategory.VALIDATION, "Content required"),
    ("E047", ErrorCategory.VALIDATION, "Block missing required field"),
    ("E048", ErrorCategory.VALIDATION, "Unknown block type"),
    ("E049", ErrorCategory.VALIDATION, "Unknown block field"),
    ("E050", ErrorCategory.VALIDATION, "Table column missing key"),
    ("E051", ErrorCategory.VALIDATION, "Missing kind-required field"),
    ("E052", ErrorCategory.VALIDATION, "Insufficient approvals"),
    ("E054", ErrorCategory.VALIDATION, "Cross-reference not found"),
    # I/O
    ("E060", ErrorCategory.IO, "File not found"),
    ("E061", ErrorCategory.IO, "File read error"),
    ("E062", ErrorCategory.IO, "File write error"),
    ("E063", ErrorCategory.IO, "Permission denied"),
    ("E064", ErrorCategory.IO, "Directory not found"),
    ("E065", ErrorCategory.IO, "Directory creation failed"),
    ("E066", ErrorCategory.IO, "YAML parse error"),
    ("E067", ErrorCategory.IO, "Invalid record format"),
    ("E068", ErrorCategory.IO, "File already exists"),
    ("E069", ErrorCategory.IO, "Disk full"),
    ("E070", ErrorCategory.IO, "Backup failed"),
    ("E071", ErrorCategory.IO, "Restore failed"),
    # Graph
    ("E080", ErrorCategory.GRAPH, "Cycle detected"),
    ("E081", ErrorCategory.GRAPH, "Disconnected graph"),
    ("E082", ErrorCategory.GRAPH, "Invalid graph structure"),
    ("E083", ErrorCategory.GRAPH, "Node already in graph"),
    ("E085", ErrorCategory.GRAPH, "Node not in graph"),
    # Contracts
    ("E100", ErrorCategory.CONTRACT, "Contract has no name"),
    ("E101", ErrorCategory.CONTRACT, "Empty contract step"),
    ("E102", ErrorCategory.CONTRACT, "Unknown node reference in contract"),
    ("E103", ErrorCategory.CONTRACT, "Duplicate contract name"),
    ("E104", ErrorCategory.CONTRACT, "Contract has no steps"),
]

ERROR_CODES: Dict[str, ErrorCode] = {
    code: ErrorCode(code=code, category=category.value, message=message)
    for code, category, message in _CODE_TABLE
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def lookup_error_code(code: str) -> Optional[ErrorCode]:
    """Return the registered code, or None if it is not registered."""
    return ERROR_CODES.get(code)


def error_codes_by_category(category: str) -> List[ErrorCode]:
    """All codes in a category, sorted by code."""
    return sorted(
        (ec for ec in ERROR_CODES.values() if ec.category == category),
        key=lambda ec: ec.code,
    )


def error_categories() -> List[str]:
    """Categories in registry order."""
    return [c.value for c in ErrorCategory]
