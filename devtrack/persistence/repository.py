"""
DevTrack Repository - in-memory entity store

Holds every entity collection, assigns ids, and answers date-scoped
queries. One instance lives for the whole process and is passed to the
aggregator, the tracker service and the CLI.

Concurrency:
- All mutations (and export_all_data) run under a single asyncio.Lock
- Critical sections contain no awaits besides acquiring the lock
- Every query returns copies, never references into the store
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from datetime import datetime, timezone, tzinfo
from typing import Any, Callable, TypeVar

from devtrack.dates import (
    DateMatch,
    ensure_aware,
    in_date_range,
    matches_date,
    parse_date,
    get_timezone,
    utcnow,
)
from devtrack.exceptions import NotFoundError, ValidationError
from devtrack.logging import StoreLogEntry, store_logger
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
    IssueCategory,
    IssuePriority,
    IssueStatus,
    Metrics,
    Record,
    Session,
    SyncStatus,
    Task,
)
from devtrack.persistence.snapshot import COLLECTIONS, Snapshot

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)

# Metric counters that may be merged individually on upsert
METRIC_FIELDS = (
    "total_lines_written",
    "total_lines_deleted",
    "total_lines_modified",
    "files_modified",
    "bugs_fixed",
    "features_added",
    "code_quality_score",
    "tests_coverage",
    "performance_score",
)


class DevTrackRepository:
    """
    In-memory store for all DevTrack entities.

    Usage:
        repo = DevTrackRepository(tz="Europe/Berlin")

        session = await repo.create_session("devtrack", is_active=True)
        await repo.update_session(session.id, {"is_active": False, "duration": 1800})

        snapshot = await repo.export_all_data()
        await other_repo.import_data(snapshot)
    """

    def __init__(self, tz: tzinfo | str = timezone.utc):
        """
        Initialize an empty store.

        Args:
            tz: Timezone whose midnight starts a day for interval-matched
                queries (git syncs, breaks, issues, file changes).
        """
        self.tz = get_timezone(tz) if isinstance(tz, str) else tz
        self._lock = asyncio.Lock()

        self._sessions: dict[int, Session] = {}
        self._commits: dict[int, Commit] = {}
        self._tasks: dict[int, Task] = {}
        self._goals: dict[str, Goals] = {}
        self._activities: dict[int, Activity] = {}
        self._git_syncs: dict[int, GitSync] = {}
        self._breaks: dict[int, Break] = {}
        self._issues: dict[int, Issue] = {}
        self._metrics: dict[str, Metrics] = {}
        self._file_changes: dict[int, FileChange] = {}

        self._next_ids: dict[str, int] = {attr: 1 for attr in COLLECTIONS}

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    def _allocate_id(self, collection: str) -> int:
        new_id = self._next_ids[collection]
        self._next_ids[collection] = new_id + 1
        return new_id

    def _audit(
        self,
        operation: str,
        entity: str,
        entity_id: int | None = None,
        fields: list[str] | None = None,
        records: int = 0,
    ) -> None:
        entry = StoreLogEntry(
            operation=operation,
            entity=entity,
            entity_id=entity_id,
            fields=fields,
            records=records,
        )
        store_logger.info(entry)

    @staticmethod
    def _copies(records: Any) -> list:
        return [record.copy() for record in sorted(records, key=lambda r: r.id)]

    def _for_date(
        self,
        records: dict[int, R],
        day: str,
        attr: str,
        mode: DateMatch,
    ) -> list[R]:
        """Records whose `attr` timestamp falls on `day` under the given match mode."""
        parse_date(day)
        return self._copies(
            r for r in records.values() if matches_date(getattr(r, attr), day, mode, self.tz)
        )

    def _update(
        self,
        records: dict[int, R],
        entity: str,
        entity_id: int,
        changes: dict[str, Any],
        finalize: Callable[[R, R, dict[str, Any]], R] | None = None,
    ) -> R:
        """Shallow-merge changes into an existing record. Caller holds the lock."""
        existing = records.get(entity_id)
        if existing is None:
            raise NotFoundError(entity.capitalize(), entity_id)
        model = type(existing)
        normalized = model.coerce_changes(changes)
        updated = dataclasses.replace(existing, **normalized)
        if finalize is not None:
            updated = finalize(existing, updated, normalized)
        records[entity_id] = updated
        self._audit("update", entity, entity_id, fields=sorted(normalized))
        return updated.copy()

    # =========================================================================
    # SESSION OPERATIONS
    # =========================================================================

    async def get_active_sessions(self) -> list[Session]:
        """Sessions currently in progress."""
        return self._copies(s for s in self._sessions.values() if s.is_active is True)

    async def get_session(self, session_id: int) -> Session:
        """
        Get a session by id.

        Raises:
            NotFoundError: If the session does not exist
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError("Session", session_id)
        return session.copy()

    async def get_sessions_for_date(self, day: str) -> list[Session]:
        """Sessions whose start time falls on the given UTC date."""
        return self._for_date(self._sessions, day, "start_time", DateMatch.PREFIX)

    async def create_session(
        self,
        project_name: str,
        start_time: datetime | str | None = None,
        end_time: datetime | str | None = None,
        duration: int | None = None,
        is_active: bool | None = None,
        lines_written: int = 0,
        lines_deleted: int = 0,
        files_modified: int = 0,
        productivity: int = 0,
        notes: str | None = None,
        tags: str | None = None,
    ) -> Session:
        """
        Create a coding session.

        start_time defaults to now and is_active to False. The store does not
        enforce a single active session.
        """
        async with self._lock:
            session = Session(
                id=self._allocate_id("sessions"),
                project_name=project_name,
                start_time=Session.coerce_value("start_time", start_time) or utcnow(),
                end_time=Session.coerce_value("end_time", end_time),
                duration=duration,
                is_active=bool(is_active) if is_active is not None else False,
                lines_written=lines_written,
                lines_deleted=lines_deleted,
                files_modified=files_modified,
                productivity=productivity,
                notes=notes,
                tags=tags,
            )
            self._sessions[session.id] = session
            self._audit("create", "session", session.id)
        logger.debug(f"Created session {session.id} for {project_name}")
        return session.copy()

    async def update_session(self, session_id: int, changes: dict[str, Any]) -> Session:
        """
        Shallow-merge changes into a session.

        Raises:
            NotFoundError: If the session does not exist
            ValidationError: If changes name an unknown field
        """
        async with self._lock:
            return self._update(self._sessions, "session", session_id, changes)

    # =========================================================================
    # COMMIT OPERATIONS
    # =========================================================================

    async def get_commits_for_date(self, day: str) -> list[Commit]:
        """Commits whose timestamp falls on the given UTC date."""
        return self._for_date(self._commits, day, "timestamp", DateMatch.PREFIX)

    async def get_commits_for_date_range(self, start_day: str, end_day: str) -> list[Commit]:
        """Commits whose UTC date lies in [start_day, end_day] inclusive."""
        parse_date(start_day)
        parse_date(end_day)
        return self._copies(
            c for c in self._commits.values() if in_date_range(c.timestamp, start_day, end_day)
        )

    async def create_commit(
        self,
        repository: str,
        message: str,
        lines_changed: int,
        lines_added: int = 0,
        lines_deleted: int = 0,
        files_changed: int = 1,
        commit_hash: str | None = None,
        branch: str | None = "main",
        timestamp: datetime | str | None = None,
    ) -> Commit:
        """Log a commit. Commits cannot be updated afterwards."""
        async with self._lock:
            commit = Commit(
                id=self._allocate_id("commits"),
                repository=repository,
                message=message,
                lines_changed=lines_changed,
                lines_added=lines_added,
                lines_deleted=lines_deleted,
                files_changed=files_changed,
                commit_hash=commit_hash,
                branch=branch,
                timestamp=Commit.coerce_value("timestamp", timestamp) or utcnow(),
            )
            self._commits[commit.id] = commit
            self._audit("create", "commit", commit.id)
        return commit.copy()

    # =========================================================================
    # TASK OPERATIONS
    # =========================================================================

    async def get_tasks_for_date(self, day: str) -> list[Task]:
        """Tasks created on the given UTC date."""
        return self._for_date(self._tasks, day, "timestamp", DateMatch.PREFIX)

    async def create_task(
        self,
        title: str,
        description: str | None = None,
        completed: bool = False,
        timestamp: datetime | str | None = None,
    ) -> Task:
        """Create a task; a task created already completed is stamped completed now."""
        async with self._lock:
            now = utcnow()
            task = Task(
                id=self._allocate_id("tasks"),
                title=title,
                description=description or None,
                completed=bool(completed),
                completed_at=now if completed else None,
                timestamp=Task.coerce_value("timestamp", timestamp) or now,
            )
            self._tasks[task.id] = task
            self._audit("create", "task", task.id)
        return task.copy()

    async def update_task(self, task_id: int, changes: dict[str, Any]) -> Task:
        """
        Shallow-merge changes into a task.

        completed_at is managed here: it is set to now on the first
        False -> True transition and otherwise keeps its stored value.

        Raises:
            NotFoundError: If the task does not exist
        """

        def finalize(existing: Task, updated: Task, normalized: dict[str, Any]) -> Task:
            completed_at = existing.completed_at
            if updated.completed and not existing.completed and completed_at is None:
                completed_at = utcnow()
            return dataclasses.replace(updated, completed_at=completed_at)

        async with self._lock:
            return self._update(self._tasks, "task", task_id, changes, finalize)

    # =========================================================================
    # GOALS OPERATIONS
    # =========================================================================

    async def get_goals_for_date(self, day: str) -> Goals | None:
        """Goals for a date, or None."""
        goals = self._goals.get(day)
        return goals.copy() if goals else None

    async def create_or_update_goals(
        self,
        date: str,
        coding_time_target: int,
        commits_target: int,
        tasks_target: int,
    ) -> Goals:
        """Upsert the goals for a date; an existing record keeps its id."""
        parse_date(date)
        async with self._lock:
            existing = self._goals.get(date)
            if existing:
                goals = dataclasses.replace(
                    existing,
                    coding_time_target=coding_time_target,
                    commits_target=commits_target,
                    tasks_target=tasks_target,
                )
                operation = "update"
            else:
                goals = Goals(
                    id=self._allocate_id("goals"),
                    date=date,
                    coding_time_target=coding_time_target,
                    commits_target=commits_target,
                    tasks_target=tasks_target,
                )
                operation = "create"
            self._goals[date] = goals
            self._audit(operation, "goals", goals.id)
        return goals.copy()

    # =========================================================================
    # ACTIVITY OPERATIONS
    # =========================================================================

    async def get_recent_activities(self, limit: int = 10) -> list[Activity]:
        """Newest activities first, at most `limit` of them."""
        ordered = sorted(
            self._activities.values(),
            key=lambda a: (ensure_aware(a.timestamp), a.id),
            reverse=True,
        )
        return [a.copy() for a in ordered[: max(limit, 0)]]

    async def create_activity(
        self,
        type: ActivityType | str,
        description: str,
        timestamp: datetime | str | None = None,
    ) -> Activity:
        """Append an entry to the activity log."""
        async with self._lock:
            activity = Activity(
                id=self._allocate_id("activities"),
                type=Activity.coerce_value("type", type),
                description=description,
                timestamp=Activity.coerce_value("timestamp", timestamp) or utcnow(),
            )
            self._activities[activity.id] = activity
            self._audit("create", "activity", activity.id)
        return activity.copy()

    # =========================================================================
    # GIT SYNC OPERATIONS
    # =========================================================================

    async def get_git_syncs_for_date(self, day: str) -> list[GitSync]:
        """Git syncs created during the given day in the store's timezone."""
        return self._for_date(self._git_syncs, day, "created_at", DateMatch.INTERVAL)

    async def create_git_sync(
        self,
        repository: str,
        branch: str,
        action: GitAction | str,
        commit_message: str | None = None,
        created_at: datetime | str | None = None,
    ) -> GitSync:
        """Record a git sync. Status is always success; nothing is executed."""
        async with self._lock:
            git_sync = GitSync(
                id=self._allocate_id("git_syncs"),
                repository=repository,
                branch=branch,
                action=GitSync.coerce_value("action", action),
                commit_message=commit_message or None,
                status=SyncStatus.SUCCESS,
                created_at=GitSync.coerce_value("created_at", created_at) or utcnow(),
            )
            self._git_syncs[git_sync.id] = git_sync
            self._audit("create", "git_sync", git_sync.id)
        return git_sync.copy()

    # =========================================================================
    # BREAK OPERATIONS
    # =========================================================================

    async def get_active_breaks(self) -> list[Break]:
        """Breaks currently in progress, lowest id first."""
        return self._copies(b for b in self._breaks.values() if b.is_active is True)

    async def get_breaks_for_date(self, day: str) -> list[Break]:
        """Breaks started during the given day in the store's timezone."""
        return self._for_date(self._breaks, day, "start_time", DateMatch.INTERVAL)

    async def create_break(
        self,
        type: BreakType | str,
        duration: int,
        start_time: datetime | str | None = None,
        end_time: datetime | str | None = None,
        is_active: bool = False,
    ) -> Break:
        """Record a break."""
        async with self._lock:
            now = utcnow()
            record = Break(
                id=self._allocate_id("breaks"),
                type=Break.coerce_value("type", type),
                duration=duration,
                start_time=Break.coerce_value("start_time", start_time) or now,
                end_time=Break.coerce_value("end_time", end_time),
                is_active=bool(is_active),
                created_at=now,
            )
            self._breaks[record.id] = record
            self._audit("create", "break", record.id)
        return record.copy()

    async def end_active_break(self, end_time: datetime | str | None = None) -> Break | None:
        """
        End the active break with the lowest id.

        Returns:
            The ended break, or None (and no mutation) if nothing is active
        """
        async with self._lock:
            active = sorted(
                (b for b in self._breaks.values() if b.is_active is True),
                key=lambda b: b.id,
            )
            if not active:
                return None
            if len(active) > 1:
                logger.warning(f"{len(active)} active breaks found, ending break {active[0].id}")
            ended = dataclasses.replace(
                active[0],
                end_time=Break.coerce_value("end_time", end_time) or utcnow(),
                is_active=False,
            )
            self._breaks[ended.id] = ended
            self._audit("end", "break", ended.id)
        return ended.copy()

    # =========================================================================
    # ISSUE OPERATIONS
    # =========================================================================

    async def get_issues(self) -> list[Issue]:
        """All issues, most recently created first."""
        ordered = sorted(
            self._issues.values(),
            key=lambda i: (ensure_aware(i.created_at), i.id),
            reverse=True,
        )
        return [i.copy() for i in ordered]

    async def get_issues_for_date(self, day: str) -> list[Issue]:
        """Issues created during the given day in the store's timezone."""
        return self._for_date(self._issues, day, "created_at", DateMatch.INTERVAL)

    async def create_issue(
        self,
        title: str,
        description: str | None = None,
        status: IssueStatus | str = IssueStatus.OPEN,
        priority: IssuePriority | str = IssuePriority.MEDIUM,
        category: IssueCategory | str = IssueCategory.BUG,
        assignee: str | None = None,
        repository: str | None = None,
        branch: str | None = None,
        lines_affected: int | None = None,
        estimated_hours: int | None = None,
        actual_hours: int | None = None,
        tags: str | None = None,
        created_at: datetime | str | None = None,
    ) -> Issue:
        """Open an issue."""
        async with self._lock:
            created = Issue.coerce_value("created_at", created_at) or utcnow()
            issue = Issue(
                id=self._allocate_id("issues"),
                title=title,
                description=description,
                status=Issue.coerce_value("status", status),
                priority=Issue.coerce_value("priority", priority),
                category=Issue.coerce_value("category", category),
                assignee=assignee,
                repository=repository,
                branch=branch,
                lines_affected=lines_affected,
                estimated_hours=estimated_hours,
                actual_hours=actual_hours,
                tags=tags,
                created_at=created,
                updated_at=created,
            )
            self._issues[issue.id] = issue
            self._audit("create", "issue", issue.id)
        return issue.copy()

    async def update_issue(self, issue_id: int, changes: dict[str, Any]) -> Issue:
        """
        Shallow-merge changes into an issue.

        updated_at is bumped on every update. resolved_at is set to now when
        the update sets status to resolved and is never cleared.

        Raises:
            NotFoundError: If the issue does not exist
        """

        def finalize(existing: Issue, updated: Issue, normalized: dict[str, Any]) -> Issue:
            now = utcnow()
            resolved_at = existing.resolved_at
            if normalized.get("status") is IssueStatus.RESOLVED:
                resolved_at = now
            return dataclasses.replace(updated, updated_at=now, resolved_at=resolved_at)

        async with self._lock:
            return self._update(self._issues, "issue", issue_id, changes, finalize)

    # =========================================================================
    # METRICS OPERATIONS
    # =========================================================================

    async def get_metrics_for_date(self, day: str) -> Metrics | None:
        """Stored metrics for a date, or None."""
        metrics = self._metrics.get(day)
        return metrics.copy() if metrics else None

    async def create_or_update_metrics(self, date: str, **counters: int | None) -> Metrics:
        """
        Upsert the metrics for a date.

        Counters left out (or passed as None) keep their stored value on
        update and default to 0 on create. The record keeps its id and
        created_at across updates.

        Raises:
            ValidationError: If an unknown counter name is given
        """
        parse_date(date)
        unknown = set(counters) - set(METRIC_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown metrics field(s): {', '.join(sorted(unknown))}")
        provided = {k: v for k, v in counters.items() if v is not None}

        async with self._lock:
            existing = self._metrics.get(date)
            if existing:
                metrics = dataclasses.replace(existing, **provided)
                operation = "update"
            else:
                metrics = Metrics(id=self._allocate_id("metrics"), date=date, **provided)
                operation = "create"
            self._metrics[date] = metrics
            self._audit(operation, "metrics", metrics.id, fields=sorted(provided))
        return metrics.copy()

    async def get_weekly_metrics(self, start_day: str, end_day: str) -> list[Metrics]:
        """Metrics whose date lies in [start_day, end_day] inclusive, in date order."""
        start = parse_date(start_day)
        end = parse_date(end_day)
        selected = [m for m in self._metrics.values() if start <= parse_date(m.date) <= end]
        return [m.copy() for m in sorted(selected, key=lambda m: (m.date, m.id))]

    # =========================================================================
    # FILE CHANGE OPERATIONS
    # =========================================================================

    async def get_file_changes_for_date(self, day: str) -> list[FileChange]:
        """File changes recorded during the given day in the store's timezone."""
        return self._for_date(self._file_changes, day, "timestamp", DateMatch.INTERVAL)

    async def get_file_changes_for_session(self, session_id: int) -> list[FileChange]:
        """File changes linked to a session id."""
        return self._copies(f for f in self._file_changes.values() if f.session_id == session_id)

    async def create_file_change(
        self,
        file_path: str,
        repository: str,
        change_type: ChangeType | str,
        lines_added: int = 0,
        lines_deleted: int = 0,
        lines_modified: int = 0,
        commit_id: str | None = None,
        session_id: int | None = None,
        timestamp: datetime | str | None = None,
    ) -> FileChange:
        """Record a file change. session_id is not checked against sessions."""
        async with self._lock:
            change = FileChange(
                id=self._allocate_id("file_changes"),
                file_path=file_path,
                repository=repository,
                change_type=FileChange.coerce_value("change_type", change_type),
                lines_added=lines_added,
                lines_deleted=lines_deleted,
                lines_modified=lines_modified,
                commit_id=commit_id,
                session_id=session_id,
                timestamp=FileChange.coerce_value("timestamp", timestamp) or utcnow(),
            )
            self._file_changes[change.id] = change
            self._audit("create", "file_change", change.id)
        return change.copy()

    # =========================================================================
    # EXPORT / IMPORT
    # =========================================================================

    def _collection(self, attr: str) -> dict:
        return getattr(self, f"_{attr}")

    async def export_all_data(self) -> Snapshot:
        """Copy every collection into a snapshot stamped with the export time."""
        async with self._lock:
            snapshot = Snapshot(
                sessions=self._copies(self._sessions.values()),
                commits=self._copies(self._commits.values()),
                tasks=self._copies(self._tasks.values()),
                goals=[g.copy() for _, g in sorted(self._goals.items())],
                activities=self._copies(self._activities.values()),
                git_syncs=self._copies(self._git_syncs.values()),
                breaks=self._copies(self._breaks.values()),
                issues=self._copies(self._issues.values()),
                metrics=[m.copy() for _, m in sorted(self._metrics.items())],
                file_changes=self._copies(self._file_changes.values()),
            )
        logger.debug(f"Exported {snapshot.record_count()} records")
        return snapshot

    async def import_data(self, data: Snapshot | dict[str, Any]) -> None:
        """
        Replace the store's contents with a snapshot.

        Every collection is cleared and repopulated with the snapshot's
        records, keeping their ids. Each id counter advances to
        max(current, max_imported_id + 1). Collections missing from the
        snapshot end up empty.

        Raises:
            ValidationError: If a plain dict payload is malformed
        """
        snapshot = data if isinstance(data, Snapshot) else Snapshot.from_dict(data)

        async with self._lock:
            for attr in COLLECTIONS:
                self._collection(attr).clear()

            for attr in COLLECTIONS:
                target = self._collection(attr)
                for record in getattr(snapshot, attr):
                    key = record.date if attr in ("goals", "metrics") else record.id
                    target[key] = record.copy()
                    self._next_ids[attr] = max(self._next_ids[attr], record.id + 1)

            self._audit("import", "snapshot", records=snapshot.record_count())

        logger.info(f"Imported {snapshot.record_count()} records (version {snapshot.version})")

    def counts(self) -> dict[str, int]:
        """Number of records per collection."""
        return {attr: len(self._collection(attr)) for attr in COLLECTIONS}
