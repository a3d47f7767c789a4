"""
Unit tests for infrastructure/audit_log.py and infrastructure/backup.py
"""
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from core.schemas import AuditEntry
from infrastructure.audit_log import AuditFilter, JsonlAuditLog
from infrastructure.backup import BackupManager
from infrastructure.diagnostics import BackupError, StoreError


T0 = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def entry(node_id="a", operation="update", minutes=0, **kwargs):
    return AuditEntry(timestamp=T0 + timedelta(minutes=minutes), node_id=node_id, operation=operation, **kwargs)


@pytest.fixture
def audit_log(tmp_path):
    return JsonlAuditLog(tmp_path / ".keystone" / "history.jsonl")


# =============================================================================
# AUDIT LOG
# =============================================================================

def test_empty_log(audit_log):
    assert audit_log.query() == []


def test_append_writes_one_line_per_entry(audit_log):
    audit_log.append(entry())
    audit_log.append(entry(node_id="b"))

    lines = audit_log.path.read_bytes().split(b"\n")
    assert len(lines) == 3
    assert lines[-1] == b""


def test_query_sorted_by_timestamp(audit_log):
    audit_log.append(entry(node_id="late", minutes=5))
    audit_log.append(entry(node_id="early", minutes=1))

    assert [e.node_id for e in audit_log.query()] == ["early", "late"]


def test_query_filters(audit_log):
    audit_log.append(entry(node_id="a", operation="create", user="ana", minutes=0))
    audit_log.append(entry(node_id="a", operation="update", user="bo", minutes=1))
    audit_log.append(entry(node_id="b", operation="update", user="ana", minutes=2))

    assert len(audit_log.query(AuditFilter(node_id="a"))) == 2
    assert len(audit_log.query(AuditFilter(operation="update"))) == 2
    assert len(audit_log.query(AuditFilter(user="ana", operation="update"))) == 1
    assert [e.node_id for e in audit_log.query(AuditFilter(since=T0 + timedelta(minutes=1)))] == ["a", "b"]
    assert len(audit_log.query(AuditFilter(until=T0))) == 1
    assert len(audit_log.query(AuditFilter(limit=2))) == 2


def test_snapshots_round_trip(audit_log):
    audit_log.append(entry(before={"id": "a", "version": 1}, after={"id": "a", "version": 2}, content_hash="h"))

    [loaded] = audit_log.query()

    assert loaded.before == {"id": "a", "version": 1}
    assert loaded.after["version"] == 2
    assert loaded.timestamp == T0


def test_incomplete_trailing_line_is_skipped(audit_log):
    audit_log.append(entry())
    with open(audit_log.path, "ab") as f:
        f.write(b'{"timestamp":"2025-01-01T12:00:00Z","node_id":"par')

    assert len(audit_log.query()) == 1


def test_corrupt_line_raises(audit_log):
    audit_log.path.parent.mkdir(parents=True)
    audit_log.path.write_bytes(b"not json\n")

    with pytest.raises(StoreError) as exc_info:
        audit_log.query()

    assert exc_info.value.code == "E067"
    assert exc_info.value.diagnostic.location.line == 1


def test_latest_hashes(audit_log):
    audit_log.append(entry(node_id="a", content_hash="h1", minutes=0))
    audit_log.append(entry(node_id="a", content_hash="h2", minutes=1))
    audit_log.append(entry(node_id="b", minutes=2))

    assert audit_log.query_latest_hashes() == {"a": "h2"}


def test_concurrent_appends_do_not_interleave(audit_log):
    def writer(prefix):
        for i in range(50):
            audit_log.append(entry(node_id=f"{prefix}/{i}"))

    threads = [threading.Thread(target=writer, args=(p,)) for p in ("x", "y", "z")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(audit_log.query()) == 150


# =============================================================================
# BACKUP
# =============================================================================

@pytest.fixture
def project_with_state(tmp_path):
    state = tmp_path / ".keystone"
    (state / "nodes" / "systems").mkdir(parents=True)
    (state / "config.yaml").write_text("project_name: demo\n", encoding="utf-8")
    (state / "nodes" / "systems" / "combat.yaml").write_text("id: systems/combat\n", encoding="utf-8")
    return tmp_path


def test_create_backup(project_with_state):
    result = BackupManager(project_with_state).create()

    backup_dir = Path(result.backup_dir)
    assert backup_dir.name.startswith("backup-")
    assert (backup_dir / "config.yaml").read_text(encoding="utf-8") == "project_name: demo\n"
    assert (backup_dir / "nodes" / "systems" / "combat.yaml").exists()
    assert result.node_files == 1


def test_backups_in_same_second_do_not_collide(project_with_state):
    manager = BackupManager(project_with_state)
    first = manager.create()
    second = manager.create()

    assert first.backup_dir != second.backup_dir
    assert len(manager.list()) == 2


def test_restore_replaces_live_state(project_with_state):
    manager = BackupManager(project_with_state)
    result = manager.create()

    nodes = project_with_state / ".keystone" / "nodes"
    (nodes / "systems" / "combat.yaml").write_text("id: changed\n", encoding="utf-8")
    (nodes / "extra.yaml").write_text("id: extra\n", encoding="utf-8")
    (project_with_state / ".keystone" / "config.yaml").write_text("project_name: other\n", encoding="utf-8")

    manager.restore(result.backup_dir)

    assert (nodes / "systems" / "combat.yaml").read_text(encoding="utf-8") == "id: systems/combat\n"
    assert not (nodes / "extra.yaml").exists()
    assert (project_with_state / ".keystone" / "config.yaml").read_text(encoding="utf-8") == "project_name: demo\n"


def test_restore_missing_backup(project_with_state):
    with pytest.raises(BackupError) as exc_info:
        BackupManager(project_with_state).restore(project_with_state / "nope")
    assert exc_info.value.code == "E071"


def test_restore_backup_without_config(project_with_state):
    empty = project_with_state / ".keystone" / "backup-empty"
    empty.mkdir()
    with pytest.raises(BackupError) as exc_info:
        BackupManager(project_with_state).restore(empty)
    assert exc_info.value.code == "E071"


def test_list_without_state_dir(tmp_path):
    assert BackupManager(tmp_path).list() == []
