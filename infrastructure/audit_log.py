"""
KEYSTONE AUDIT LOG - Append-Only Node History

Every mutation of a node is recorded as one AuditEntry. JsonlAuditLog
writes newline-delimited JSON, one entry per line.

Architecture:
- JsonlAuditLog.append: Serialised by a lock held from open-for-append
  until the record line is written
- JsonlAuditLog.query: Lock-free reader; a final line without a newline
  belongs to an append still in flight and is skipped
- AuditFilter: Node, operation, user and time-window filters plus a limit

Usage:
    log = JsonlAuditLog(project_root / ".keystone" / "history.jsonl")
    log.append(AuditEntry(timestamp=datetime.now(timezone.utc),
                          node_id="systems/combat", operation="update"))

    for entry in log.query(AuditFilter(node_id="systems/combat")):
        print(entry.timestamp, entry.operation)
"""
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

import msgspec

from core.schemas import AuditEntry, Diagnostic, Location
from infrastructure.diagnostics import StoreError

logger = logging.getLogger(__name__)


class AuditFilter(msgspec.Struct, kw_only=True):
    """Query filter. Empty fields match everything; limit 0 means no limit."""
    node_id: str = ""
    operation: str = ""
    user: str = ""
    since: Optional[datetime] = None
    until: Optional[datetime] = None
    limit: int = 0

    def matches(self, entry: AuditEntry) -> bool:
        if self.node_id and entry.node_id != self.node_id:
            return False
        if self.operation and entry.operation != self.operation:
            return False
        if self.user and entry.user != self.user:
            return False
        if self.since is not None and entry.timestamp.timestamp() < self.since.timestamp():
            return False
        if self.until is not None and entry.timestamp.timestamp() > self.until.timestamp():
            return False
        return True


class JsonlAuditLog:
    """
    File-based audit store.

    Writes entries as newline-delimited JSON. Reading returns entries in
    chronological order regardless of the order they were appended.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._encoder = msgspec.json.Encoder()
        self._decoder = msgspec.json.Decoder(type=AuditEntry)

    def append(self, entry: AuditEntry) -> None:
        """
        Raises:
            StoreError: E062 if the record cannot be written
        """
        line = self._encoder.encode(entry) + b"\n"
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.path, "ab") as f:
                    f.write(line)
                    f.flush()
            except OSError as e:
                raise StoreError(Diagnostic(
                    code="E062",
                    summary="File write error",
                    detail=f"cannot append audit entry: {e}",
                    location=Location(file=str(self.path)),
                )) from e
        logger.debug("Recorded %s of %s", entry.operation, entry.node_id)

    def _read_all(self) -> List[AuditEntry]:
        if not self.path.exists():
            return []

        data = self.path.read_bytes()
        lines = data.split(b"\n")
        # Whatever follows the last newline is an append in progress
        complete = lines[:-1]

        entries = []
        for number, raw in enumerate(complete, start=1):
            if not raw.strip():
                continue
            try:
                entries.append(self._decoder.decode(raw))
            except msgspec.DecodeError as e:
                raise StoreError(Diagnostic(
                    code="E067",
                    summary="Invalid record format",
                    detail=str(e),
                    location=Location(file=str(self.path), line=number),
                )) from e
        return entries

    def query(self, audit_filter: Optional[AuditFilter] = None) -> List[AuditEntry]:
        """Matching entries sorted by timestamp, oldest first."""
        audit_filter = audit_filter or AuditFilter()
        matched = [e for e in self._read_all() if audit_filter.matches(e)]
        matched.sort(key=lambda e: e.timestamp.timestamp())
        if audit_filter.limit > 0:
            matched = matched[:audit_filter.limit]
        return matched

    def query_latest_hashes(self) -> Dict[str, str]:
        """
        Most recent content hash per node.

        Entries without a content hash are ignored.
        """
        latest: Dict[str, str] = {}
        for entry in self.query():
            if entry.content_hash:
                latest[entry.node_id] = entry.content_hash
        return latest
