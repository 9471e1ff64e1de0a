"""
DevTrack Persistence Models

Dataclasses for every entity the store keeps. Designed for:
- Type safety with str enums and Optional types
- Serialization to/from the camelCase JSON used by backup files
- Field-set validation when loading snapshots or applying partial updates
"""

from __future__ import annotations

import dataclasses
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar

from devtrack.dates import format_datetime, parse_date, parse_datetime, utcnow
from devtrack.exceptions import ValidationError


# ============================================================================
# ENUMS - values match the strings stored in backup files
# ============================================================================


class ActivityType(str, Enum):
    """Kind of event recorded in the activity log."""

    SESSION = "session"
    COMMIT = "commit"
    TASK = "task"
    GIT = "git"
    BREAK = "break"
    ISSUE = "issue"
    FILE = "file"
    BACKUP = "backup"
    EXPORT = "export"
    RESTORE = "restore"


class GitAction(str, Enum):
    """Git operation that was synced."""

    PULL = "pull"
    PUSH = "push"
    SYNC = "sync"


class SyncStatus(str, Enum):
    """Outcome of a git sync."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class BreakType(str, Enum):
    """Break length category."""

    SHORT = "short"
    LONG = "long"
    CUSTOM = "custom"


class IssueStatus(str, Enum):
    """Issue lifecycle status."""

    OPEN = "open"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class IssuePriority(str, Enum):
    """Issue priority level."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class IssueCategory(str, Enum):
    """Issue category."""

    BUG = "bug"
    FEATURE = "feature"
    ENHANCEMENT = "enhancement"
    TASK = "task"


class ChangeType(str, Enum):
    """Type of file change."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

_CAMEL_RE = re.compile(r"_([a-z])")


def to_camel(name: str) -> str:
    """snake_case -> camelCase (project_name -> projectName)."""
    return _CAMEL_RE.sub(lambda m: m.group(1).upper(), name)


def enum_value(value: Any) -> Any:
    """Unwrap an enum member to its raw value."""
    return value.value if isinstance(value, Enum) else value


# ============================================================================
# BASE RECORD
# ============================================================================


class Record:
    """
    Mixin shared by all entity dataclasses.

    Subclasses declare which fields are required on load, which hold
    timestamps and which hold enum values; to_dict/from_dict and
    coerce_changes use those declarations.
    """

    REQUIRED: ClassVar[tuple[str, ...]] = ()
    DATETIME_FIELDS: ClassVar[tuple[str, ...]] = ()
    DATE_FIELDS: ClassVar[tuple[str, ...]] = ()
    ENUM_FIELDS: ClassVar[dict[str, type[Enum]]] = {}

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in dataclasses.fields(cls))  # type: ignore[arg-type]

    @classmethod
    def nullable_fields(cls) -> frozenset[str]:
        """Fields annotated `| None`."""
        return frozenset(
            f.name for f in dataclasses.fields(cls) if "None" in str(f.type)  # type: ignore[arg-type]
        )

    @classmethod
    def counter_fields(cls) -> frozenset[str]:
        """int and bool fields other than the id."""
        return frozenset(
            f.name
            for f in dataclasses.fields(cls)  # type: ignore[arg-type]
            if f.name != "id" and str(f.type) in ("int", "bool")
        )

    @classmethod
    def wire_names(cls) -> dict[str, str]:
        """Map of camelCase wire name -> attribute name."""
        return {to_camel(name): name for name in cls.field_names()}

    @classmethod
    def coerce_value(cls, name: str, value: Any) -> Any:
        """Convert a raw value for a field to its in-memory type."""
        if value is None:
            return None
        if name in cls.DATETIME_FIELDS:
            return parse_datetime(value)
        if name in cls.DATE_FIELDS:
            return parse_date(value).isoformat()
        if name in cls.ENUM_FIELDS:
            enum_cls = cls.ENUM_FIELDS[name]
            try:
                return enum_cls(enum_value(value))
            except ValueError:
                allowed = ", ".join(m.value for m in enum_cls)
                raise ValidationError(
                    f"Invalid {to_camel(name)} '{value}' (expected one of: {allowed})",
                    field=to_camel(name),
                    value=value,
                )
        return value

    @classmethod
    def coerce_changes(cls, changes: dict[str, Any]) -> dict[str, Any]:
        """
        Normalize a partial update to attribute names and in-memory types.

        Accepts snake_case or camelCase keys. Unknown fields and attempts to
        change the id raise ValidationError.
        """
        wire = cls.wire_names()
        names = set(cls.field_names())
        normalized: dict[str, Any] = {}
        for key, value in changes.items():
            name = key if key in names else wire.get(key)
            if name is None:
                raise ValidationError(f"Unknown field '{key}' for {cls.__name__}", field=key)
            if name == "id":
                raise ValidationError(f"{cls.__name__} id cannot be changed", field="id")
            normalized[name] = cls.coerce_value(name, value)
        return normalized

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-ready dict with camelCase keys."""
        data: dict[str, Any] = {}
        for name in self.field_names():
            value = getattr(self, name)
            if isinstance(value, datetime):
                value = format_datetime(value)
            data[to_camel(name)] = enum_value(value)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]):
        """
        Create from a snapshot dict.

        Keys may be camelCase or snake_case; unknown keys are ignored. A null
        counter or flag loads as the field default.

        Raises:
            ValidationError: If a required field is missing or a value is malformed
        """
        if not isinstance(data, dict):
            raise ValidationError(f"{cls.__name__} record must be an object", value=data)
        nullable = cls.nullable_fields()
        counters = cls.counter_fields()
        kwargs: dict[str, Any] = {}
        for name in cls.field_names():
            camel = to_camel(name)
            if camel in data:
                raw = data[camel]
            elif name in data:
                raw = data[name]
            elif name in cls.REQUIRED:
                raise ValidationError(
                    f"{cls.__name__} record is missing required field '{camel}'",
                    field=camel,
                )
            else:
                continue
            if raw is None and name not in nullable:
                if name in counters or name not in cls.REQUIRED:
                    continue
                raise ValidationError(
                    f"{cls.__name__} field '{camel}' must not be null",
                    field=camel,
                )
            kwargs[name] = cls.coerce_value(name, raw)
        if not isinstance(kwargs.get("id", 0), int) or isinstance(kwargs.get("id"), bool):
            raise ValidationError(f"{cls.__name__} id must be an integer", field="id", value=kwargs.get("id"))
        return cls(**kwargs)

    def copy(self):
        """Shallow copy, so callers never hold a reference into the store."""
        return dataclasses.replace(self)  # type: ignore[type-var]


# ============================================================================
# ENTITIES
# ============================================================================


@dataclass
class Session(Record):
    """A coding session. Active while running, duration set when it ends."""

    REQUIRED = ("id", "project_name", "start_time")
    DATETIME_FIELDS = ("start_time", "end_time")

    id: int = 0
    project_name: str = ""
    start_time: datetime = field(default_factory=utcnow)
    end_time: datetime | None = None
    duration: int | None = None  # seconds
    is_active: bool = False
    lines_written: int = 0
    lines_deleted: int = 0
    files_modified: int = 0
    productivity: int = 0  # 0-100 score
    notes: str | None = None
    tags: str | None = None  # JSON array as string


@dataclass
class Commit(Record):
    """A logged commit. Immutable once created."""

    REQUIRED = ("id", "repository", "message", "lines_changed", "timestamp")
    DATETIME_FIELDS = ("timestamp",)

    id: int = 0
    repository: str = ""
    message: str = ""
    lines_changed: int = 0
    lines_added: int = 0
    lines_deleted: int = 0
    files_changed: int = 1
    commit_hash: str | None = None
    branch: str | None = "main"
    timestamp: datetime = field(default_factory=utcnow)


@dataclass
class Task(Record):
    """A to-do item; completed_at is stamped the first time it is completed."""

    REQUIRED = ("id", "title", "timestamp")
    DATETIME_FIELDS = ("completed_at", "timestamp")

    id: int = 0
    title: str = ""
    description: str | None = None
    completed: bool = False
    completed_at: datetime | None = None
    timestamp: datetime = field(default_factory=utcnow)


@dataclass
class Goals(Record):
    """Daily targets, one record per date."""

    REQUIRED = ("id", "date", "coding_time_target", "commits_target", "tasks_target")
    DATE_FIELDS = ("date",)

    id: int = 0
    coding_time_target: int = 0  # minutes
    commits_target: int = 0
    tasks_target: int = 0
    date: str = ""  # YYYY-MM-DD


@dataclass
class Activity(Record):
    """Append-only activity log entry."""

    REQUIRED = ("id", "type", "description", "timestamp")
    DATETIME_FIELDS = ("timestamp",)
    ENUM_FIELDS = {"type": ActivityType}

    id: int = 0
    type: ActivityType = ActivityType.SESSION
    description: str = ""
    timestamp: datetime = field(default_factory=utcnow)


@dataclass
class GitSync(Record):
    """A recorded pull/push/sync. No real git integration."""

    REQUIRED = ("id", "repository", "branch", "action", "created_at")
    DATETIME_FIELDS = ("created_at",)
    ENUM_FIELDS = {"action": GitAction, "status": SyncStatus}

    id: int = 0
    repository: str = ""
    branch: str = ""
    action: GitAction = GitAction.SYNC
    commit_message: str | None = None
    status: SyncStatus = SyncStatus.PENDING
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Break(Record):
    """A break from coding; duration is the planned length in minutes."""

    REQUIRED = ("id", "type", "duration", "start_time", "created_at")
    DATETIME_FIELDS = ("start_time", "end_time", "created_at")
    ENUM_FIELDS = {"type": BreakType}

    id: int = 0
    type: BreakType = BreakType.SHORT
    duration: int = 0  # minutes
    start_time: datetime = field(default_factory=utcnow)
    end_time: datetime | None = None
    is_active: bool = False
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Issue(Record):
    """A tracked bug, feature or chore."""

    REQUIRED = ("id", "title", "created_at", "updated_at")
    DATETIME_FIELDS = ("created_at", "updated_at", "resolved_at")
    ENUM_FIELDS = {
        "status": IssueStatus,
        "priority": IssuePriority,
        "category": IssueCategory,
    }

    id: int = 0
    title: str = ""
    description: str | None = None
    status: IssueStatus = IssueStatus.OPEN
    priority: IssuePriority = IssuePriority.MEDIUM
    category: IssueCategory = IssueCategory.BUG
    assignee: str | None = None
    repository: str | None = None
    branch: str | None = None
    lines_affected: int | None = None
    estimated_hours: int | None = None
    actual_hours: int | None = None
    tags: str | None = None  # JSON array as string
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    resolved_at: datetime | None = None


@dataclass
class Metrics(Record):
    """Daily code metrics, one record per date."""

    REQUIRED = ("id", "date")
    DATETIME_FIELDS = ("created_at",)
    DATE_FIELDS = ("date",)

    id: int = 0
    date: str = ""  # YYYY-MM-DD
    total_lines_written: int = 0
    total_lines_deleted: int = 0
    total_lines_modified: int = 0
    files_modified: int = 0
    bugs_fixed: int = 0
    features_added: int = 0
    code_quality_score: int = 0  # 0-100
    tests_coverage: int = 0  # 0-100
    performance_score: int = 0  # 0-100
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class FileChange(Record):
    """A single file touched during a session or commit."""

    REQUIRED = ("id", "file_path", "repository", "change_type", "timestamp")
    DATETIME_FIELDS = ("timestamp",)
    ENUM_FIELDS = {"change_type": ChangeType}

    id: int = 0
    file_path: str = ""
    repository: str = ""
    change_type: ChangeType = ChangeType.MODIFIED
    lines_added: int = 0
    lines_deleted: int = 0
    lines_modified: int = 0
    commit_id: str | None = None
    session_id: int | None = None
    timestamp: datetime = field(default_factory=utcnow)
