"""
DevTrack Persistence Layer

In-memory entity store plus file-based backup/restore/export.
Data lives in memory; files are written only when asked to.
"""

from devtrack.persistence.files import BackupManager, render_csv
from devtrack.persistence.models import (
    Activity,
    # Enums
    ActivityType,
    Break,
    BreakType,
    ChangeType,
    Commit,
    FileChange,
    GitAction,
    GitSync,
    Goals,
    Issue,
    IssueCategory,
    IssuePriority,
    IssueStatus,
    Metrics,
    # Entities
    Session,
    SyncStatus,
    Task,
)
from devtrack.persistence.repository import DevTrackRepository
from devtrack.persistence.snapshot import SNAPSHOT_VERSION, Snapshot

__all__ = [
    # Enums
    "ActivityType",
    "GitAction",
    "SyncStatus",
    "BreakType",
    "IssueStatus",
    "IssuePriority",
    "IssueCategory",
    "ChangeType",
    # Entities
    "Session",
    "Commit",
    "Task",
    "Goals",
    "Activity",
    "GitSync",
    "Break",
    "Issue",
    "Metrics",
    "FileChange",
    # Snapshot
    "Snapshot",
    "SNAPSHOT_VERSION",
    # Store and files
    "DevTrackRepository",
    "BackupManager",
    "render_csv",
]
