"""
KEYSTONE MIGRATIONS - Schema Evolution for Stored Nodes

- schema_hash: Fingerprint of the configured schema
- registry: Named migrations and shortest-path lookup
- executor: Backup, transform, save and audit
"""

from migrations.schema_hash import compute_schema_fingerprint, schema_version_matches
from migrations.registry import Migration, MigrationRegistry, identity_migration
from migrations.executor import (
    ExecutorOptions,
    ExecutorResult,
    MigrationExecutor,
    needs_migration,
)

__all__ = [
    "compute_schema_fingerprint",
    "schema_version_matches",
    "Migration",
    "MigrationRegistry",
    "identity_migration",
    "ExecutorOptions",
    "ExecutorResult",
    "MigrationExecutor",
    "needs_migration",
]
