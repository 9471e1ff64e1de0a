"""
Audit entries for DevTrack.

Entries are passed to the audit loggers as objects and serialized by the
handler, one JSON object per line.
"""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar


def now_iso() -> str:
    """Get current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


@dataclass
class AuditEntry:
    """Fields shared by every audit line."""

    kind: ClassVar[str] = "audit"

    timestamp: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


@dataclass
class StoreLogEntry(AuditEntry):
    """One mutation of the entity store."""

    kind: ClassVar[str] = "store"

    operation: str = ""  # create, update, end, import
    entity: str = ""  # session, commit, goals, snapshot, ...
    entity_id: int | None = None
    fields: list[str] | None = None  # touched by an update
    records: int = 0  # imported record count


@dataclass
class BackupLogEntry(AuditEntry):
    """One file operation of the backup manager."""

    kind: ClassVar[str] = "backup"

    action: str = ""  # backup, load, daily_snapshot, state, csv_export, cleanup
    path: str = ""
    records: int = 0
    bytes_written: int = 0
    duration_ms: int = 0
    error: str | None = None
    error_type: str | None = None

    def failed(self, exc: BaseException) -> "BackupLogEntry":
        """Record the exception that aborted the operation."""
        self.error = str(exc)
        self.error_type = type(exc).__name__
        return self
