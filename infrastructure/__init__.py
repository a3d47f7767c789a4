"""
KEYSTONE INFRASTRUCTURE - Diagnostics and Storage

This package contains infrastructure components:
- diagnostics: Collector, formatter and DiagnosticError hierarchy
- suggestions: Typo-tolerant "did you mean" matching
- location: Field path to file position mapping for YAML documents
- node_store / config_store: YAML-backed node and config persistence
- audit_log: Append-only JSONL node history
- backup: Project snapshots used before migrations
"""

from infrastructure.diagnostics import (
    Collector,
    DiagnosticFormatter,
    DiagnosticError,
    StoreError,
    MigrationError,
    BackupError,
)
from infrastructure.suggestions import Suggester, levenshtein_distance
from infrastructure.location import LocationTracker
from infrastructure.node_store import YamlNodeStore
from infrastructure.config_store import YamlConfigStore
from infrastructure.audit_log import JsonlAuditLog, AuditFilter
from infrastructure.backup import BackupManager, BackupResult

__all__ = [
    "Collector",
    "DiagnosticFormatter",
    "DiagnosticError",
    "StoreError",
    "MigrationError",
    "BackupError",
    "Suggester",
    "levenshtein_distance",
    "LocationTracker",
    "YamlNodeStore",
    "YamlConfigStore",
    "JsonlAuditLog",
    "AuditFilter",
    "BackupManager",
    "BackupResult",
]
