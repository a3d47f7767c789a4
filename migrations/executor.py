"""
KEYSTONE MIGRATION EXECUTOR - Rewriting Nodes to the Current Schema

Flow of execute():
1. Load config; current = stored fingerprint, expected = computed one
2. Equal: nothing to do
3. Resolve the migration path (or a single identity "auto-update")
4. Back up config and nodes before anything is touched
5. Load every node and run it through the path, in order
6. Dry run: report and stop
7. Save each modified node with its version bumped, audit each save
8. Persist the new fingerprint in the config

A failing transform aborts the whole run. Nodes saved before the failure
stay saved; the backup from step 4 is the way back.

Audit failures are logged and never fail a migration.
"""
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple, Union

import msgspec

from core.ontology import AuditOperation
from core.schemas import AuditEntry, Diagnostic, NodeData, compute_content_hash, node_snapshot
from infrastructure.audit_log import JsonlAuditLog
from infrastructure.backup import BackupManager
from infrastructure.config_store import YamlConfigStore
from infrastructure.diagnostics import MigrationError
from infrastructure.node_store import YamlNodeStore
from migrations.registry import Migration, MigrationRegistry, identity_migration
from migrations.schema_hash import compute_schema_fingerprint

logger = logging.getLogger(__name__)


# =============================================================================
# OPTIONS AND RESULTS
# =============================================================================

@dataclass
class ExecutorOptions:
    """Behaviour switches for a migration run."""
    dry_run: bool = False        # Compute changes, write nothing
    no_backup: bool = False      # Skip the pre-migration snapshot
    user: str = ""               # Recorded in audit entries; defaults to $USER


class ExecutorResult(msgspec.Struct, kw_only=True):
    nodes_processed: int = 0
    nodes_modified: int = 0
    modified_ids: List[str] = msgspec.field(default_factory=list)
    migrations_applied: List[str] = msgspec.field(default_factory=list)
    backup_dir: str = ""
    source_hash: str = ""
    target_hash: str = ""
    dry_run: bool = False


def current_user() -> str:
    return os.environ.get("USER") or os.environ.get("USERNAME") or "unknown"


def nodes_equal(a: NodeData, b: NodeData) -> bool:
    """
    Whether a transform left a node unchanged.

    Only identity, version and title are compared. Changes confined to other
    fields are not detected and such nodes are not rewritten.
    """
    return a.id == b.id and a.version == b.version and a.title == b.title


# =============================================================================
# EXECUTOR
# =============================================================================

class MigrationExecutor:
    """
    Runs migrations against a project's stores.

    Collaborators are passed in; use for_project() to wire the file-based
    implementations for a project directory.
    """

    def __init__(
        self,
        config_store,
        node_store,
        registry: MigrationRegistry,
        audit_log=None,
        backup=None,
        options: Optional[ExecutorOptions] = None,
    ):
        self.config_store = config_store
        self.node_store = node_store
        self.registry = registry
        self.audit_log = audit_log
        self.backup = backup
        self.options = options or ExecutorOptions()

    @classmethod
    def for_project(
        cls,
        root: Union[str, Path],
        registry: MigrationRegistry,
        options: Optional[ExecutorOptions] = None,
    ) -> "MigrationExecutor":
        config_store = YamlConfigStore(root)
        config = config_store.load()
        nodes_dir = config_store.resolve_nodes_path(config)
        return cls(
            config_store=config_store,
            node_store=YamlNodeStore(nodes_dir),
            registry=registry,
            audit_log=JsonlAuditLog(config_store.resolve_history_path(config)),
            backup=BackupManager(root, nodes_dir),
            options=options,
        )

    def needs_migration(self) -> Tuple[bool, str, str]:
        """(needed, current fingerprint, expected fingerprint). Read-only."""
        return needs_migration(self.config_store)

    def resolve_path(self, source_hash: str, target_hash: str) -> List[Migration]:
        path = self.registry.find_path(source_hash, target_hash)
        if path:
            return path
        return [identity_migration("auto-update", source_hash, target_hash)]

    def execute(self) -> ExecutorResult:
        """
        Raises:
            MigrationError: E013 if a transform fails
            BackupError: if the pre-migration backup cannot be created
        """
        config = self.config_store.load()
        source = config.schema_version
        target = compute_schema_fingerprint(config)
        result = ExecutorResult(source_hash=source, target_hash=target, dry_run=self.options.dry_run)

        if source == target:
            logger.info("Schema fingerprint %r is current; nothing to migrate", target)
            return result

        path = self.resolve_path(source, target)
        result.migrations_applied = [m.name for m in path]
        logger.info(
            "Migrating schema %r -> %r via %s%s",
            source, target, ", ".join(result.migrations_applied),
            " (dry run)" if self.options.dry_run else "",
        )

        if self.backup is not None and not self.options.no_backup and not self.options.dry_run:
            result.backup_dir = self.backup.create().backup_dir

        rewritten: List[Tuple[NodeData, NodeData]] = []
        for node in self.node_store.load_all():
            result.nodes_processed += 1
            migrated = self._apply_path(node, path)
            if not nodes_equal(node, migrated):
                rewritten.append((node, migrated))
                result.modified_ids.append(node.id)
        result.nodes_modified = len(rewritten)

        if self.options.dry_run:
            return result

        user = self.options.user or current_user()
        for original, migrated in rewritten:
            saved = msgspec.structs.replace(migrated, version=migrated.version + 1)
            self.node_store.save(saved)
            self._record(original, saved, user)

        config = msgspec.structs.replace(config, schema_version=target)
        self.config_store.save(config)
        logger.info("Migrated %d of %d nodes", result.nodes_modified, result.nodes_processed)
        return result

    def _apply_path(self, node: NodeData, path: List[Migration]) -> NodeData:
        current = node
        for migration in path:
            try:
                current = migration.apply(current)
            except Exception as e:
                raise MigrationError(Diagnostic(
                    code="E013",
                    summary=f"migration {migration.name!r} failed for node {node.id}",
                    detail=str(e),
                )) from e
        return current

    def _record(self, before: NodeData, after: NodeData, user: str) -> None:
        if self.audit_log is None:
            return
        entry = AuditEntry(
            timestamp=datetime.now(timezone.utc),
            node_id=after.id,
            operation=AuditOperation.MIGRATE.value,
            user=user,
            content_hash=compute_content_hash(after),
            before=node_snapshot(before),
            after=node_snapshot(after),
        )
        try:
            self.audit_log.append(entry)
        except Exception as e:
            logger.warning("Failed to record migration of %s in audit log: %s", after.id, e)


def needs_migration(config_store) -> Tuple[bool, str, str]:
    """(needed, current fingerprint, expected fingerprint) for a config store."""
    config = config_store.load()
    expected = compute_schema_fingerprint(config)
    return config.schema_version != expected, config.schema_version, expected
