"""
DevTrack - Tracker Service

Command layer over the store: every user-facing mutation is paired with
the activity log entry describing it, and backup/restore/export flows
snapshot the store before touching files.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from devtrack.analytics import MetricsAggregator
from devtrack.dates import ensure_aware, parse_datetime, utcnow
from devtrack.exceptions import ValidationError
from devtrack.persistence.files import BackupManager
from devtrack.persistence.models import (
    Activity,
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
    Metrics,
    Session,
    Task,
    enum_value,
)
from devtrack.persistence.repository import DevTrackRepository

logger = logging.getLogger(__name__)

CSV_EXPORT_KINDS = ("sessions", "commits", "tasks", "issues", "activities")
CSV_ACTIVITY_LIMIT = 1000


class DevTracker:
    """
    Tracker operations with their activity-log side effects.

    Usage:
        repo = DevTrackRepository()
        tracker = DevTracker(repo, BackupManager("./data"))

        session = await tracker.start_session("devtrack")
        await tracker.end_session(session.id)
        path = await tracker.backup()
    """

    def __init__(self, repository: DevTrackRepository, backups: BackupManager):
        self.repository = repository
        self.backups = backups
        self.aggregator = MetricsAggregator(repository)

    async def _log(self, kind: ActivityType, description: str) -> Activity:
        return await self.repository.create_activity(kind, description)

    # =========================================================================
    # SESSIONS
    # =========================================================================

    async def start_session(self, project_name: str, **fields: Any) -> Session:
        """Start an active coding session."""
        fields.setdefault("is_active", True)
        session = await self.repository.create_session(project_name, **fields)
        await self._log(ActivityType.SESSION, f"Started coding session: {session.project_name}")
        return session

    async def update_session(self, session_id: int, changes: dict[str, Any]) -> Session:
        """Patch a session; setting an end time logs the session as ended."""
        session = await self.repository.update_session(session_id, changes)
        if changes.get("end_time") or changes.get("endTime"):
            await self._log(ActivityType.SESSION, f"Ended coding session: {session.project_name}")
        return session

    async def end_session(
        self,
        session_id: int,
        end_time: datetime | str | None = None,
    ) -> Session:
        """Stop a session, deriving its duration in seconds from its start time."""
        ended_at = parse_datetime(end_time) or utcnow()
        session = await self.repository.get_session(session_id)
        elapsed = (ended_at - ensure_aware(session.start_time)).total_seconds()
        changes: dict[str, Any] = {
            "end_time": ended_at,
            "is_active": False,
            "duration": max(int(elapsed), 0),
        }
        return await self.update_session(session_id, changes)

    # =========================================================================
    # COMMITS, TASKS, GOALS
    # =========================================================================

    async def log_commit(self, repository: str, message: str, lines_changed: int, **fields: Any) -> Commit:
        """Log a commit."""
        commit = await self.repository.create_commit(repository, message, lines_changed, **fields)
        await self._log(ActivityType.COMMIT, f"Committed: {commit.message}")
        return commit

    async def add_task(self, title: str, **fields: Any) -> Task:
        """Add a task (possibly already completed)."""
        task = await self.repository.create_task(title, **fields)
        verb = "Completed" if task.completed else "Added"
        await self._log(ActivityType.TASK, f"{verb} task: {task.title}")
        return task

    async def update_task(self, task_id: int, changes: dict[str, Any]) -> Task:
        """Patch a task; marking it completed is logged."""
        task = await self.repository.update_task(task_id, changes)
        if changes.get("completed"):
            await self._log(ActivityType.TASK, f"Completed task: {task.title}")
        return task

    async def complete_task(self, task_id: int) -> Task:
        return await self.update_task(task_id, {"completed": True})

    async def set_goals(
        self,
        date: str,
        coding_time_target: int,
        commits_target: int,
        tasks_target: int,
    ) -> Goals:
        return await self.repository.create_or_update_goals(
            date, coding_time_target, commits_target, tasks_target
        )

    # =========================================================================
    # GIT, BREAKS
    # =========================================================================

    async def sync_git(
        self,
        repository: str,
        branch: str,
        action: GitAction | str,
        commit_message: str | None = None,
    ) -> GitSync:
        """Record a git pull/push/sync."""
        git_sync = await self.repository.create_git_sync(repository, branch, action, commit_message)
        suffix = f" - {git_sync.commit_message}" if git_sync.commit_message else ""
        await self._log(
            ActivityType.GIT,
            f"Git {git_sync.action.value}: {git_sync.repository}{suffix}",
        )
        return git_sync

    async def start_break(
        self,
        type: BreakType | str,
        duration: int,
        start_time: datetime | str | None = None,
    ) -> Break:
        """Start an active break of the planned length in minutes."""
        record = await self.repository.create_break(type, duration, start_time=start_time, is_active=True)
        await self._log(
            ActivityType.BREAK,
            f"Started {record.type.value} break ({record.duration} minutes)",
        )
        return record

    async def end_break(self, end_time: datetime | str | None = None) -> Break | None:
        """End the active break, if any."""
        record = await self.repository.end_active_break(end_time)
        if record is not None:
            await self._log(ActivityType.BREAK, f"Ended {record.type.value} break")
        return record

    # =========================================================================
    # ISSUES, METRICS, FILE CHANGES
    # =========================================================================

    async def create_issue(self, title: str, **fields: Any) -> Issue:
        issue = await self.repository.create_issue(title, **fields)
        await self._log(ActivityType.ISSUE, f"Created {issue.category.value}: {issue.title}")
        return issue

    async def update_issue(self, issue_id: int, changes: dict[str, Any]) -> Issue:
        """Patch an issue; status changes are logged."""
        issue = await self.repository.update_issue(issue_id, changes)
        status = changes.get("status")
        if status:
            await self._log(
                ActivityType.ISSUE,
                f"Updated issue status to {enum_value(status)}: {issue.title}",
            )
        return issue

    async def record_metrics(self, date: str, **counters: int | None) -> Metrics:
        return await self.repository.create_or_update_metrics(date, **counters)

    async def record_file_change(
        self,
        file_path: str,
        repository: str,
        change_type: ChangeType | str,
        **fields: Any,
    ) -> FileChange:
        change = await self.repository.create_file_change(file_path, repository, change_type, **fields)
        await self._log(
            ActivityType.FILE,
            f"{change.change_type.value} {change.file_path} (+{change.lines_added}/-{change.lines_deleted})",
        )
        return change

    # =========================================================================
    # BACKUP / RESTORE / EXPORT
    # =========================================================================

    async def backup(self) -> Path:
        """Write a timestamped backup of the whole store."""
        snapshot = await self.repository.export_all_data()
        path = await self.backups.save_backup(snapshot)
        await self._log(ActivityType.BACKUP, f"Created backup: {path.name}")
        return path

    async def restore(self, filename: str) -> int:
        """
        Replace the store with a backup.

        Returns:
            Number of records restored
        """
        snapshot = await self.backups.load_backup(filename)
        await self.repository.import_data(snapshot)
        await self._log(ActivityType.RESTORE, f"Restored data from: {filename}")
        return snapshot.record_count()

    async def export_csv(self, kind: str, start_date: str, end_date: str | None = None) -> Path:
        """
        Export one collection to CSV.

        sessions, tasks and issues are taken for start_date; commits for
        [start_date, end_date]; activities are the latest 1000.

        Raises:
            ValidationError: If kind is unknown or commits lack an end date
        """
        rows: list[Any]
        if kind == "sessions":
            rows = await self.repository.get_sessions_for_date(start_date)
        elif kind == "commits":
            if not end_date:
                raise ValidationError("Commit export needs an end date", field="endDate")
            rows = await self.repository.get_commits_for_date_range(start_date, end_date)
        elif kind == "tasks":
            rows = await self.repository.get_tasks_for_date(start_date)
        elif kind == "issues":
            rows = await self.repository.get_issues_for_date(start_date)
        elif kind == "activities":
            rows = await self.repository.get_recent_activities(CSV_ACTIVITY_LIMIT)
        else:
            raise ValidationError(
                f"Invalid export type '{kind}' (expected one of: {', '.join(CSV_EXPORT_KINDS)})",
                field="type",
                value=kind,
            )

        path = await self.backups.save_csv_export([r.to_dict() for r in rows], kind)
        await self._log(ActivityType.EXPORT, f"Exported {kind} to CSV: {path.name}")
        return path

    async def daily_snapshot(self) -> Path:
        """Write today's snapshot of the store."""
        snapshot = await self.repository.export_all_data()
        return await self.backups.save_daily_snapshot(snapshot)

    async def cleanup_backups(self, days_to_keep: int = 30) -> int:
        deleted = await self.backups.delete_old_backups(days_to_keep)
        logger.info(f"Cleaned up {deleted} old backups")
        return deleted

    # =========================================================================
    # WORKING STATE
    # =========================================================================

    async def load_latest(self) -> bool:
        """
        Load the saved working state, falling back to the latest backup or
        daily snapshot.

        Returns:
            True if anything was loaded
        """
        snapshot = await self.backups.load_state()
        if snapshot is None:
            snapshot = await self.backups.get_latest_snapshot()
        if snapshot is None:
            return False
        await self.repository.import_data(snapshot)
        return True

    async def save_state(self) -> Path:
        snapshot = await self.repository.export_all_data()
        return await self.backups.save_state(snapshot)
