"""
KEYSTONE MIGRATION REGISTRY

Migrations transform nodes from one schema fingerprint to another. The
registry finds the shortest chain of migrations between two fingerprints.

A migration whose source is "" applies from any fingerprint. A migration
without a transform leaves nodes untouched and only moves the fingerprint.

The registry is an ordinary value owned by the caller; there is no global
instance.

Usage:
    registry = MigrationRegistry()
    registry.register(Migration(
        name="add-owner",
        description="Give every node an owner",
        source_hash="",
        target_hash="a1b2c3d4e5f60718",
        transform=add_owner,
    ))
    path = registry.find_path(current, expected)
"""
from collections import deque
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from core.schemas import Diagnostic, NodeData
from infrastructure.diagnostics import MigrationError

NodeTransform = Callable[[NodeData], NodeData]


@dataclass(frozen=True)
class Migration:
    """
    One schema step.

    `transform` must be pure: it returns a new node (or the same node when
    nothing changes) and never mutates its argument.
    """
    name: str
    description: str = ""
    source_hash: str = ""
    target_hash: str = ""
    transform: Optional[NodeTransform] = None

    def applies_from(self, source_hash: str) -> bool:
        return self.source_hash == "" or self.source_hash == source_hash

    def apply(self, node: NodeData) -> NodeData:
        if self.transform is None:
            return node
        return self.transform(node)


def identity_migration(name: str = "auto-update", source_hash: str = "", target_hash: str = "") -> Migration:
    """A migration that only moves the fingerprint."""
    return Migration(
        name=name,
        description="Update schema fingerprint without changing nodes",
        source_hash=source_hash,
        target_hash=target_hash,
    )


class MigrationRegistry:
    """Named migrations and shortest-path lookup between fingerprints."""

    def __init__(self):
        self._migrations: Dict[str, Migration] = {}

    def register(self, migration: Migration) -> None:
        """
        Raises:
            MigrationError: E014 if the name is already registered
        """
        if migration.name in self._migrations:
            raise MigrationError(Diagnostic(
                code="E014",
                summary=f"Duplicate migration: {migration.name}",
                detail=f"a migration named {migration.name!r} is already registered",
            ))
        self._migrations[migration.name] = migration

    def find(self, source_hash: str, target_hash: str) -> Optional[Migration]:
        """A single migration going directly from source to target."""
        for migration in self._migrations.values():
            if migration.target_hash == target_hash and migration.applies_from(source_hash):
                return migration
        return None

    def find_path(self, source_hash: str, target_hash: str) -> Optional[List[Migration]]:
        """
        Shortest migration sequence from source to target (breadth-first).

        Returns:
            The migrations in order, or None if the fingerprints are already
            equal or no sequence reaches the target
        """
        if source_hash == target_hash:
            return None

        queue = deque([(source_hash, [])])
        visited = set()
        while queue:
            current, path = queue.popleft()
            if current in visited:
                continue
            visited.add(current)
            for migration in self._migrations.values():
                if not migration.applies_from(current):
                    continue
                next_path = path + [migration]
                if migration.target_hash == target_hash:
                    return next_path
                if migration.target_hash not in visited:
                    queue.append((migration.target_hash, next_path))
        return None

    def list(self) -> List[Migration]:
        """Registered migrations in registration order."""
        return list(self._migrations.values())

    def clear(self) -> None:
        self._migrations.clear()

    def __len__(self) -> int:
        return len(self._migrations)

    def __contains__(self, name: str) -> bool:
        return name in self._migrations
