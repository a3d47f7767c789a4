"""
KEYSTONE SCHEMAS - The Grammar of the System

If ontology.py is the Dictionary (defining the words we can use),
schemas.py is the Grammar (defining how we structure documents).

This module defines the data structures that flow through the engine:
- NodeData: A versioned design document and everything attached to it
- Block / Section / Content: The tagged-union body of a node
- AuditEntry: One immutable history record
- Location / Diagnostic: Where a problem is and what it is
- ProjectConfig: Project settings and the configured schema
- Document helpers: Conversion between nodes and their YAML mapping form

Design Principles:
1. STRICT TYPING: msgspec.Struct with no silent type coercion
2. KW_ONLY: Enforce keyword arguments to prevent positional mix-ups
3. INLINE BLOCKS: A block is written as {type: rule, text: ...}; the
   field map is kept separate from the type tag in memory
4. LOAD-ONLY ATTRIBUTES: source_file and raw_content describe where a node
   came from and are never written back
"""
import msgspec
from typing import Optional, Dict, Any, List
from datetime import date, datetime
import hashlib

from core.ontology import NodeStatus, IssueSeverity


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def compute_hash(content: bytes) -> str:
    """SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(content).hexdigest()


# =============================================================================
# REFERENCES
# =============================================================================

class RefLink(msgspec.Struct, kw_only=True, omit_defaults=True):
    """A link to another node, with optional free-text context."""
    target: str
    context: str = ""
    resolved: bool = False


class Refs(msgspec.Struct, kw_only=True, omit_defaults=True):
    """
    Outgoing relationships of a node.

    Only `uses` creates a dependency edge. `related` is informational but
    still counts as a reference for existence checks and reverse indexing.
    """
    uses: List[RefLink] = msgspec.field(default_factory=list)
    related: List[RefLink] = msgspec.field(default_factory=list)
    emits_events: List[str] = msgspec.field(default_factory=list)
    vocabulary: List[str] = msgspec.field(default_factory=list)


# =============================================================================
# CONTENT (Tagged-Union Blocks)
# =============================================================================

class Block(msgspec.Struct, kw_only=True):
    """
    A typed unit of content.

    `type` is the tag ("rule", "table", or a configured custom type);
    `data` holds every other field in document order.
    """
    type: str = ""
    data: Dict[str, Any] = msgspec.field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


class Section(msgspec.Struct, kw_only=True, omit_defaults=True):
    name: str = ""
    blocks: List[Block] = msgspec.field(default_factory=list)


class Content(msgspec.Struct, kw_only=True, omit_defaults=True):
    sections: List[Section] = msgspec.field(default_factory=list)


# =============================================================================
# NODE ATTACHMENTS
# =============================================================================

class Contract(msgspec.Struct, kw_only=True, omit_defaults=True):
    """A given/when/then scenario describing behaviour of the node."""
    name: str = ""
    scenario: str = ""
    given: List[str] = msgspec.field(default_factory=list)
    when: List[str] = msgspec.field(default_factory=list)
    then: List[str] = msgspec.field(default_factory=list)


class Constraint(msgspec.Struct, kw_only=True, omit_defaults=True):
    """
    A boolean CEL expression that must hold for every node in scope.

    Scope is "" or "all" (every node), an exact kind, or a glob pattern
    matched against node IDs.
    """
    expr: str
    message: str = ""
    scope: str = ""


class Issue(msgspec.Struct, kw_only=True, omit_defaults=True):
    """An open question or TBD attached to a node."""
    id: str
    description: str = ""
    severity: str = IssueSeverity.MEDIUM.value
    location: str = ""
    resolved: bool = False


class Reviewer(msgspec.Struct, kw_only=True, omit_defaults=True):
    """A recorded approval of one node version."""
    name: str
    timestamp: str = ""
    version: int = 0
    note: str = ""


class DocRef(msgspec.Struct, kw_only=True, omit_defaults=True):
    """A pointer to external documentation."""
    path: str
    keywords: List[str] = msgspec.field(default_factory=list)
    context: str = ""


# =============================================================================
# NODE DATA (The Core Document)
# =============================================================================

class NodeData(msgspec.Struct, kw_only=True, omit_defaults=True):
    """
    A versioned design document.

    Required fields default to empty values so that an incomplete file still
    loads; the schema validator reports what is missing instead of the loader
    refusing the whole file.
    """
    # === Identity ===
    id: str = ""                         # Slash-separated path, e.g. "systems/combat"
    kind: str = ""
    version: int = 0                     # Incremented on each rewrite
    status: str = ""                     # NodeStatus.value
    title: str = ""

    # === Description ===
    summary: str = ""
    tags: List[str] = msgspec.field(default_factory=list)
    refs: Refs = msgspec.field(default_factory=Refs)
    content: Optional[Content] = None
    glossary: Dict[str, str] = msgspec.field(default_factory=dict)
    llm_context: str = ""

    # === Governance ===
    contracts: List[Contract] = msgspec.field(default_factory=list)
    constraints: List[Constraint] = msgspec.field(default_factory=list)
    issues: List[Issue] = msgspec.field(default_factory=list)
    reviewers: List[Reviewer] = msgspec.field(default_factory=list)
    docs: List[DocRef] = msgspec.field(default_factory=list)
    custom: Dict[str, Any] = msgspec.field(default_factory=dict)

    # === Load-only (never persisted) ===
    source_file: str = ""
    raw_content: str = ""

    def reference_targets(self) -> List[str]:
        """Targets of uses then related, in declaration order."""
        return [r.target for r in self.refs.uses] + [r.target for r in self.refs.related]

    def approvals_for_version(self, version: Optional[int] = None) -> int:
        """Count distinct reviewers who approved the given (default current) version."""
        wanted = self.version if version is None else version
        return len({r.name for r in self.reviewers if r.version == wanted})

    @classmethod
    def create(
        cls,
        id: str,
        kind: str,
        title: str = "",
        **kwargs
    ) -> "NodeData":
        """Factory for a fresh draft node at version 1."""
        kwargs.setdefault("version", 1)
        kwargs.setdefault("status", NodeStatus.DRAFT.value)
        return cls(id=id, kind=kind, title=title or id, **kwargs)


# =============================================================================
# AUDIT HISTORY
# =============================================================================

class AuditEntry(msgspec.Struct, kw_only=True, frozen=True, omit_defaults=True):
    """One immutable history record."""
    timestamp: datetime
    node_id: str
    operation: str                       # AuditOperation.value
    user: str = ""
    content_hash: str = ""
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None


# =============================================================================
# DIAGNOSTICS
# =============================================================================

class Location(msgspec.Struct, kw_only=True, frozen=True):
    """A position in a source file. Line and column are 1-based; 0 means unknown."""
    file: str = ""
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        if self.line > 0 and self.column > 0:
            return f"{self.file}:{self.line}:{self.column}"
        if self.line > 0:
            return f"{self.file}:{self.line}"
        return self.file

    @property
    def is_zero(self) -> bool:
        return not self.file and self.line == 0 and self.column == 0


class RelatedNode(msgspec.Struct, kw_only=True, frozen=True):
    node_id: str
    reason: str = ""


class Diagnostic(msgspec.Struct, kw_only=True):
    """
    A structured problem report.

    Rendered on one line by str(); DiagnosticFormatter produces the
    multi-line, optionally coloured form.
    """
    code: str
    summary: str
    detail: str = ""
    location: Optional[Location] = None
    context: List[str] = msgspec.field(default_factory=list)
    suggestion: str = ""
    related: List[RelatedNode] = msgspec.field(default_factory=list)

    def __str__(self) -> str:
        parts = [f"[{self.code}] {self.summary}"]
        if self.location is not None and not self.location.is_zero:
            parts.append(f" at {self.location}")
        if self.detail:
            parts.append(f": {self.detail}")
        if self.context:
            parts.append(f" ({', '.join(self.context)})")
        if self.suggestion:
            parts.append(f" [Hint: {self.suggestion}]")
        return "".join(parts)


# =============================================================================
# PROJECT CONFIGURATION
# =============================================================================

class RefConstraint(msgspec.Struct, kw_only=True, frozen=True):
    """Names the (block type, field) pair a field's values must come from."""
    block_type: str
    field: str


class FieldDef(msgspec.Struct, kw_only=True, omit_defaults=True):
    type: str = ""
    required: bool = False
    enum: List[str] = msgspec.field(default_factory=list)
    refs: List[RefConstraint] = msgspec.field(default_factory=list)


class BlockTypeConfig(msgspec.Struct, kw_only=True, omit_defaults=True):
    required_fields: List[str] = msgspec.field(default_factory=list)
    optional_fields: List[str] = msgspec.field(default_factory=list)
    fields: Dict[str, FieldDef] = msgspec.field(default_factory=dict)

    def effective_required(self) -> List[str]:
        """required_fields plus every typed field marked required, in declaration order."""
        required = list(self.required_fields)
        for name, field_def in self.fields.items():
            if field_def.required and name not in required:
                required.append(name)
        return required

    def effective_optional(self) -> List[str]:
        """Every other field the type accepts: optional_fields and the remaining typed fields."""
        required = set(self.effective_required())
        optional = [f for f in self.optional_fields if f not in required]
        for name in self.fields:
            if name not in required and name not in optional:
                optional.append(name)
        return optional


class SchemaRule(msgspec.Struct, kw_only=True, omit_defaults=True):
    """Custom fields every node of one kind must carry."""
    required_fields: List[str] = msgspec.field(default_factory=list)


class ProjectConfig(msgspec.Struct, kw_only=True, omit_defaults=True):
    project_name: str = ""
    nodes_path: str = ".keystone/nodes"
    history_path: str = ".keystone/history.jsonl"
    version: int = 1
    required_approvals: int = 1
    custom_block_types: Dict[str, BlockTypeConfig] = msgspec.field(default_factory=dict)
    schema_rules: Dict[str, SchemaRule] = msgspec.field(default_factory=dict)
    schema_version: str = ""             # Persisted schema fingerprint
    custom: Dict[str, Any] = msgspec.field(default_factory=dict)


# =============================================================================
# DOCUMENT CONVERSION (YAML mapping <-> NodeData)
# =============================================================================

_LOAD_ONLY_FIELDS = ("source_file", "raw_content")


def to_plain(value: Any) -> Any:
    """
    Recursively turn YAML-native values into JSON-compatible builtins.

    PyYAML resolves unquoted timestamps to date/datetime; everything in the
    model stores them as ISO strings.
    """
    if isinstance(value, dict):
        return {str(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _block_from_mapping(raw: Any) -> Dict[str, Any]:
    if not isinstance(raw, dict):
        return {"type": "", "data": {}}
    fields = dict(raw)
    block_type = fields.pop("type", "")
    nested = fields.pop("data", None)
    if isinstance(nested, dict):
        for key, value in nested.items():
            fields.setdefault(key, value)
    return {"type": block_type if block_type is not None else "", "data": fields}


def _ref_from_mapping(raw: Any) -> Any:
    if isinstance(raw, str):
        return {"target": raw}
    return raw


def node_from_document(doc: Dict[str, Any], source_file: str = "", raw_content: str = "") -> NodeData:
    """
    Build a NodeData from a parsed YAML mapping.

    Raises:
        msgspec.ValidationError: if a field has the wrong type
    """
    doc = to_plain(doc)
    refs = doc.get("refs")
    if isinstance(refs, dict):
        for key in ("uses", "related"):
            if isinstance(refs.get(key), list):
                refs[key] = [_ref_from_mapping(r) for r in refs[key]]
    content = doc.get("content")
    if isinstance(content, dict):
        for section in content.get("sections") or []:
            if isinstance(section, dict) and isinstance(section.get("blocks"), list):
                section["blocks"] = [_block_from_mapping(b) for b in section["blocks"]]
    for key in _LOAD_ONLY_FIELDS:
        doc.pop(key, None)
    node = msgspec.convert(doc, type=NodeData)
    node.source_file = source_file
    node.raw_content = raw_content
    return node


def _is_empty(value: Any) -> bool:
    return value is None or value == {} or value == []


def node_to_document(node: NodeData) -> Dict[str, Any]:
    """
    Convert a node into its YAML mapping form.

    Blocks are flattened to {type, <fields sorted>}; empty collections and
    load-only attributes are dropped.
    """
    doc = msgspec.to_builtins(node)
    for key in _LOAD_ONLY_FIELDS:
        doc.pop(key, None)
    content = doc.get("content")
    if isinstance(content, dict):
        for section in content.get("sections", []):
            flat = []
            for block in section.get("blocks", []):
                entry = {"type": block.get("type", "")}
                data = block.get("data", {})
                for key in sorted(data):
                    entry[key] = data[key]
                flat.append(entry)
            if "blocks" in section:
                section["blocks"] = flat
    return {k: v for k, v in doc.items() if not _is_empty(v)}


_snapshot_encoder = msgspec.json.Encoder(order="sorted")


def node_snapshot(node: NodeData) -> Dict[str, Any]:
    """A JSON-safe copy of the persisted form, for audit before/after."""
    return node_to_document(node)


def compute_content_hash(node: NodeData) -> str:
    """Hash of the persisted form with keys sorted at every level."""
    return compute_hash(_snapshot_encoder.encode(node_to_document(node)))
