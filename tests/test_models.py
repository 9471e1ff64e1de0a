"""Tests for persistence models and snapshots."""

from datetime import datetime, timezone

import pytest

from devtrack.exceptions import ValidationError
from devtrack.persistence.models import (
    Break,
    BreakType,
    Commit,
    Goals,
    Issue,
    IssueStatus,
    Metrics,
    Session,
    Task,
    to_camel,
)
from devtrack.persistence.snapshot import SNAPSHOT_VERSION, Snapshot


class TestRecordSerialization:
    """Tests for to_dict/from_dict."""

    def test_to_camel(self):
        """snake_case converts to camelCase."""
        assert to_camel("project_name") == "projectName"
        assert to_camel("id") == "id"

    def test_session_to_dict(self):
        """Keys are camelCase and timestamps are ISO strings with Z."""
        session = Session(
            id=1,
            project_name="devtrack",
            start_time=datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc),
            duration=3600,
        )
        data = session.to_dict()
        assert data["projectName"] == "devtrack"
        assert data["startTime"] == "2024-01-15T10:00:00.000Z"
        assert data["endTime"] is None
        assert data["isActive"] is False
        assert "project_name" not in data

    def test_enum_values_unwrapped(self):
        """Enum members serialize as their values."""
        issue = Issue(id=1, title="Crash", status=IssueStatus.IN_PROGRESS)
        assert issue.to_dict()["status"] == "in-progress"

    def test_from_dict_camel_case(self):
        """camelCase keys load; unknown keys are ignored."""
        task = Task.from_dict(
            {
                "id": 3,
                "title": "Write tests",
                "completed": True,
                "completedAt": "2024-01-15T12:00:00.000Z",
                "timestamp": "2024-01-15T09:00:00.000Z",
                "somethingElse": "ignored",
            }
        )
        assert task.id == 3
        assert task.completed is True
        assert task.completed_at == datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)

    def test_from_dict_missing_required(self):
        """A missing required field names the field."""
        with pytest.raises(ValidationError) as exc:
            Session.from_dict({"id": 1, "startTime": "2024-01-15T10:00:00Z"})
        assert exc.value.field == "projectName"

    def test_from_dict_invalid_enum(self):
        """An unknown enum value is rejected."""
        with pytest.raises(ValidationError):
            Break.from_dict(
                {
                    "id": 1,
                    "type": "nap",
                    "duration": 5,
                    "startTime": "2024-01-15T10:00:00Z",
                    "createdAt": "2024-01-15T10:00:00Z",
                }
            )

    def test_from_dict_rejects_non_integer_id(self):
        """The id must be an integer."""
        with pytest.raises(ValidationError):
            Task.from_dict({"id": "7", "title": "x", "timestamp": "2024-01-15T10:00:00Z"})

    def test_from_dict_null_counters_use_defaults(self):
        """Null counters and flags load as their field defaults."""
        commit = Commit.from_dict(
            {
                "id": 1,
                "repository": "r",
                "message": "m",
                "linesChanged": None,
                "filesChanged": None,
                "timestamp": "2024-01-15T10:00:00Z",
            }
        )
        assert commit.lines_changed == 0
        assert commit.files_changed == 1
        metrics = Metrics.from_dict({"id": 1, "date": "2024-01-15", "bugsFixed": None})
        assert metrics.bugs_fixed == 0

    def test_from_dict_keeps_null_optionals(self):
        """Fields that allow null stay null."""
        session = Session.from_dict(
            {"id": 1, "projectName": "a", "startTime": "2024-01-15T10:00:00Z", "duration": None}
        )
        assert session.duration is None

    def test_from_dict_null_required_text(self):
        """A required text field set to null is rejected."""
        with pytest.raises(ValidationError) as exc:
            Session.from_dict({"id": 1, "projectName": None, "startTime": "2024-01-15T10:00:00Z"})
        assert exc.value.field == "projectName"

    def test_from_dict_validates_dates(self):
        """Goals and metrics reject dates that are not YYYY-MM-DD days."""
        with pytest.raises(ValidationError):
            Metrics.from_dict({"id": 1, "date": "15/01/2024"})
        with pytest.raises(ValidationError):
            Goals.from_dict(
                {"id": 1, "date": None, "codingTimeTarget": 1, "commitsTarget": 1, "tasksTarget": 1}
            )
        assert Goals.from_dict(
            {"id": 1, "date": "2024-01-15", "codingTimeTarget": 1, "commitsTarget": 1, "tasksTarget": 1}
        ).date == "2024-01-15"


class TestCoerceChanges:
    """Tests for partial update normalization."""

    def test_accepts_snake_and_camel(self):
        """Both key styles are accepted."""
        changes = Session.coerce_changes({"isActive": False, "end_time": "2024-01-15T11:00:00Z"})
        assert changes == {
            "is_active": False,
            "end_time": datetime(2024, 1, 15, 11, 0, tzinfo=timezone.utc),
        }

    def test_enum_strings_converted(self):
        """Enum strings become enum members."""
        assert Break.coerce_changes({"type": "long"}) == {"type": BreakType.LONG}

    def test_unknown_field(self):
        """Unknown fields are rejected."""
        with pytest.raises(ValidationError):
            Session.coerce_changes({"mood": "great"})

    def test_id_is_immutable(self):
        """The id cannot be changed."""
        with pytest.raises(ValidationError):
            Task.coerce_changes({"id": 99})


class TestSnapshot:
    """Tests for the backup snapshot structure."""

    def test_to_dict_keys(self):
        """Test snapshot keys."""
        data = Snapshot().to_dict()
        assert set(data) == {
            "sessions",
            "commits",
            "tasks",
            "goals",
            "activities",
            "gitSyncs",
            "breaks",
            "issues",
            "metrics",
            "fileChanges",
            "exportedAt",
            "version",
        }
        assert data["version"] == SNAPSHOT_VERSION
        assert data["exportedAt"].endswith("Z")

    def test_missing_collections_are_empty(self):
        """Collections missing from the payload load empty."""
        snapshot = Snapshot.from_dict(
            {"sessions": [{"id": 1, "projectName": "a", "startTime": "2024-01-15T10:00:00Z"}]}
        )
        assert len(snapshot.sessions) == 1
        assert snapshot.commits == []
        assert snapshot.record_count() == 1

    def test_collection_must_be_list(self):
        """A collection that is not a list is rejected."""
        with pytest.raises(ValidationError):
            Snapshot.from_dict({"tasks": {"id": 1}})

    def test_not_an_object(self):
        """A payload that is not an object is rejected."""
        with pytest.raises(ValidationError):
            Snapshot.from_dict([])

    def test_stamped_refreshes_metadata(self):
        """stamped returns a copy with fresh metadata."""
        snapshot = Snapshot(exported_at="2020-01-01T00:00:00.000Z", version="1.0.0")
        stamped = snapshot.stamped()
        assert stamped.version == SNAPSHOT_VERSION
        assert stamped.exported_at != "2020-01-01T00:00:00.000Z"
        assert snapshot.version == "1.0.0"
