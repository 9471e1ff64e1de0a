"""
DevTrack Snapshot

A complete point-in-time copy of every entity collection plus metadata.
The JSON shape matches existing backup files:

    {sessions, commits, tasks, goals, activities, gitSyncs, breaks,
     issues, metrics, fileChanges, exportedAt, version}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from devtrack.dates import format_datetime, utcnow
from devtrack.exceptions import ValidationError
from devtrack.persistence.models import (
    Activity,
    Break,
    Commit,
    FileChange,
    GitSync,
    Goals,
    Issue,
    Metrics,
    Record,
    Session,
    Task,
)

SNAPSHOT_VERSION = "2.0.0"

# attribute name -> (wire key, model)
COLLECTIONS: dict[str, tuple[str, type[Record]]] = {
    "sessions": ("sessions", Session),
    "commits": ("commits", Commit),
    "tasks": ("tasks", Task),
    "goals": ("goals", Goals),
    "activities": ("activities", Activity),
    "git_syncs": ("gitSyncs", GitSync),
    "breaks": ("breaks", Break),
    "issues": ("issues", Issue),
    "metrics": ("metrics", Metrics),
    "file_changes": ("fileChanges", FileChange),
}


@dataclass
class Snapshot:
    """One typed list per entity collection."""

    sessions: list[Session] = field(default_factory=list)
    commits: list[Commit] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    goals: list[Goals] = field(default_factory=list)
    activities: list[Activity] = field(default_factory=list)
    git_syncs: list[GitSync] = field(default_factory=list)
    breaks: list[Break] = field(default_factory=list)
    issues: list[Issue] = field(default_factory=list)
    metrics: list[Metrics] = field(default_factory=list)
    file_changes: list[FileChange] = field(default_factory=list)
    exported_at: str = field(default_factory=lambda: format_datetime(utcnow()) or "")
    version: str = SNAPSHOT_VERSION

    def record_count(self) -> int:
        """Total number of entity records across all collections."""
        return sum(len(getattr(self, attr)) for attr in COLLECTIONS)

    def stamped(self) -> Snapshot:
        """Copy with a fresh exportedAt and the current version tag."""
        copy = Snapshot(**{attr: list(getattr(self, attr)) for attr in COLLECTIONS})
        copy.exported_at = format_datetime(utcnow()) or ""
        copy.version = SNAPSHOT_VERSION
        return copy

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON-ready backup structure."""
        data: dict[str, Any] = {}
        for attr, (key, _model) in COLLECTIONS.items():
            data[key] = [record.to_dict() for record in getattr(self, attr)]
        data["exportedAt"] = self.exported_at
        data["version"] = self.version
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Snapshot:
        """
        Build a snapshot from a parsed backup file.

        Missing collections are treated as empty. Every record is validated
        by its model.

        Raises:
            ValidationError: If the payload or any record is malformed
        """
        if not isinstance(data, dict):
            raise ValidationError("Snapshot must be a JSON object", value=type(data).__name__)

        kwargs: dict[str, Any] = {}
        for attr, (key, model) in COLLECTIONS.items():
            raw = data.get(key, data.get(attr))
            if raw is None:
                kwargs[attr] = []
                continue
            if not isinstance(raw, list):
                raise ValidationError(f"Snapshot field '{key}' must be a list", field=key)
            kwargs[attr] = [model.from_dict(item) for item in raw]

        snapshot = cls(**kwargs)
        exported_at = data.get("exportedAt", data.get("exported_at"))
        if exported_at is not None:
            snapshot.exported_at = str(exported_at)
        if data.get("version") is not None:
            snapshot.version = str(data["version"])
        return snapshot
