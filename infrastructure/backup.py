"""
KEYSTONE BACKUP - Directory Snapshots Before Migration

A backup is a copy of the config file and the whole node tree, stored in a
timestamped directory next to the config:

    <root>/.keystone/backup-20250101-120000/
        config.yaml
        nodes/...

Restore fully replaces the live config file and node tree with the backup.
"""
import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import List, Union

import msgspec

from core.schemas import Diagnostic, Location
from infrastructure.config_store import CONFIG_DIR, CONFIG_FILE
from infrastructure.diagnostics import BackupError

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "backup-"
BACKUP_NODES_DIR = "nodes"


class BackupResult(msgspec.Struct, kw_only=True, frozen=True):
    backup_dir: str
    timestamp: str
    node_files: int = 0


class BackupManager:
    """
    Creates, lists and restores project snapshots.

    Args:
        root: Project root
        nodes_dir: Live node tree to snapshot (defaults to <root>/.keystone/nodes)
    """

    def __init__(self, root: Union[str, Path], nodes_dir: Union[str, Path, None] = None):
        self.root = Path(root)
        self.state_dir = self.root / CONFIG_DIR
        self.config_path = self.state_dir / CONFIG_FILE
        self.nodes_dir = Path(nodes_dir) if nodes_dir is not None else self.state_dir / "nodes"

    def create(self) -> BackupResult:
        """
        Raises:
            BackupError: E070 if anything cannot be copied
        """
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        backup_dir = self.state_dir / f"{BACKUP_PREFIX}{stamp}"
        suffix = 1
        while backup_dir.exists():
            backup_dir = self.state_dir / f"{BACKUP_PREFIX}{stamp}-{suffix}"
            suffix += 1

        try:
            backup_dir.mkdir(parents=True)
            if self.config_path.exists():
                shutil.copy2(self.config_path, backup_dir / CONFIG_FILE)
            node_files = 0
            if self.nodes_dir.exists():
                shutil.copytree(self.nodes_dir, backup_dir / BACKUP_NODES_DIR)
                node_files = sum(1 for p in (backup_dir / BACKUP_NODES_DIR).rglob("*") if p.is_file())
        except OSError as e:
            raise BackupError(Diagnostic(
                code="E070",
                summary="Backup failed",
                detail=str(e),
                location=Location(file=str(backup_dir)),
            )) from e

        logger.debug("Created backup %s (%d node files)", backup_dir, node_files)
        return BackupResult(backup_dir=str(backup_dir), timestamp=stamp, node_files=node_files)

    def restore(self, backup_dir: Union[str, Path]) -> None:
        """
        Replace the live config and node tree with a backup.

        Raises:
            BackupError: E071 if the backup is missing or incomplete
        """
        backup_dir = Path(backup_dir)
        location = Location(file=str(backup_dir))
        if not backup_dir.is_dir():
            raise BackupError(Diagnostic(code="E071", summary="Restore failed", detail="backup directory not found", location=location))
        backup_config = backup_dir / CONFIG_FILE
        if not backup_config.exists():
            raise BackupError(Diagnostic(code="E071", summary="Restore failed", detail="backup has no config file", location=location))

        try:
            self.state_dir.mkdir(parents=True, exist_ok=True)
            shutil.copy2(backup_config, self.config_path)
            if self.nodes_dir.exists():
                shutil.rmtree(self.nodes_dir)
            backup_nodes = backup_dir / BACKUP_NODES_DIR
            if backup_nodes.exists():
                shutil.copytree(backup_nodes, self.nodes_dir)
            else:
                self.nodes_dir.mkdir(parents=True)
        except OSError as e:
            raise BackupError(Diagnostic(code="E071", summary="Restore failed", detail=str(e), location=location)) from e

        logger.debug("Restored backup %s", backup_dir)

    def list(self) -> List[Path]:
        """Backup directories, oldest first."""
        if not self.state_dir.exists():
            return []
        return sorted(
            p for p in self.state_dir.iterdir()
            if p.is_dir() and p.name.startswith(BACKUP_PREFIX)
        )
