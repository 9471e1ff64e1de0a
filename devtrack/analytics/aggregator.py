"""
DevTrack Metrics Aggregator

Composes store queries into read-only summary views:
- dashboard():        one day's sessions, commits, tasks and goals
- enhanced_metrics(): daily metrics, a weekly roll-up, issue counts and
                      productivity rates
- export_range():     every session, commit and task in a date range

Nothing here mutates the store.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import math
from dataclasses import dataclass, field
from typing import Any

from devtrack.dates import iter_days, parse_date, shift_date
from devtrack.persistence.models import (
    Commit,
    Goals,
    IssuePriority,
    IssueStatus,
    Metrics,
    Session,
    Task,
    to_camel,
)
from devtrack.persistence.repository import DevTrackRepository

logger = logging.getLogger(__name__)

# Scores assumed for a day without stored metrics; also the seed of the weekly fold
DEFAULT_QUALITY_SCORE = 85
DEFAULT_TESTS_COVERAGE = 70
DEFAULT_PERFORMANCE_SCORE = 80

WEEK_LOOKBACK_DAYS = 7


def round_half_up(value: float) -> int:
    """Round .5 toward +infinity (2.5 -> 3, -2.5 -> -2)."""
    return math.floor(value + 0.5)


def _camel_dict(obj: Any) -> dict[str, Any]:
    return {to_camel(f.name): getattr(obj, f.name) for f in dataclasses.fields(obj)}


def default_daily_metrics(date: str) -> Metrics:
    """The metrics reported for a day that has no stored record."""
    return Metrics(
        id=0,
        date=date,
        code_quality_score=DEFAULT_QUALITY_SCORE,
        tests_coverage=DEFAULT_TESTS_COVERAGE,
        performance_score=DEFAULT_PERFORMANCE_SCORE,
    )


# ============================================================================
# RESULT TYPES
# ============================================================================


@dataclass
class DashboardSummary:
    """One day at a glance. Times are whole minutes."""

    sessions: int = 0
    total_time: int = 0
    average_session: int = 0
    commits: int = 0
    lines_of_code: int = 0
    tasks_completed: int = 0
    total_tasks: int = 0
    goals: Goals | None = None

    def to_dict(self) -> dict[str, Any]:
        data = _camel_dict(self)
        data["goals"] = self.goals.to_dict() if self.goals else None
        return data


@dataclass
class WeeklyAggregate:
    """
    Counters summed over the look-back window.

    The avg_* scores are a pairwise fold, (acc + metric) / 2 rounded at
    every step and seeded with the default scores, so later days weigh
    more than earlier ones.
    """

    lines_written: int = 0
    lines_deleted: int = 0
    files_modified: int = 0
    bugs_fixed: int = 0
    features_added: int = 0
    avg_quality_score: int = DEFAULT_QUALITY_SCORE
    avg_tests_coverage: int = DEFAULT_TESTS_COVERAGE
    avg_performance_score: int = DEFAULT_PERFORMANCE_SCORE

    def fold(self, metric: Metrics) -> WeeklyAggregate:
        """Return the aggregate with one more day folded in."""
        return WeeklyAggregate(
            lines_written=self.lines_written + metric.total_lines_written,
            lines_deleted=self.lines_deleted + metric.total_lines_deleted,
            files_modified=self.files_modified + metric.files_modified,
            bugs_fixed=self.bugs_fixed + metric.bugs_fixed,
            features_added=self.features_added + metric.features_added,
            avg_quality_score=round_half_up((self.avg_quality_score + metric.code_quality_score) / 2),
            avg_tests_coverage=round_half_up((self.avg_tests_coverage + metric.tests_coverage) / 2),
            avg_performance_score=round_half_up(
                (self.avg_performance_score + metric.performance_score) / 2
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return _camel_dict(self)


@dataclass
class IssueStats:
    """Issue counts over every issue in the store."""

    total: int = 0
    open: int = 0
    in_progress: int = 0
    resolved: int = 0
    critical: int = 0
    high: int = 0

    def to_dict(self) -> dict[str, Any]:
        return _camel_dict(self)


@dataclass
class ProductivityStats:
    """Rates derived from one day's sessions and metrics."""

    total_sessions: int = 0
    total_hours: float = 0.0
    avg_session_length: int = 0  # minutes
    lines_per_hour: int = 0
    bugs_per_day: int = 0
    features_per_week: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return _camel_dict(self)


@dataclass
class EnhancedMetrics:
    """Daily, weekly, issue and productivity views for one date."""

    daily: Metrics
    weekly: WeeklyAggregate
    issues: IssueStats
    productivity: ProductivityStats
    daily_is_default: bool = False

    def to_dict(self) -> dict[str, Any]:
        daily = self.daily.to_dict()
        if self.daily_is_default:
            # Synthesized records carry no id or createdAt
            daily.pop("id", None)
            daily.pop("createdAt", None)
        return {
            "daily": daily,
            "weekly": self.weekly.to_dict(),
            "issues": self.issues.to_dict(),
            "productivity": self.productivity.to_dict(),
        }


@dataclass
class RangeSummary:
    """Totals for a range export. total_coding_time is in seconds."""

    total_sessions: int = 0
    total_commits: int = 0
    total_tasks: int = 0
    completed_tasks: int = 0
    total_coding_time: int = 0
    total_lines_of_code: int = 0

    def to_dict(self) -> dict[str, Any]:
        return _camel_dict(self)


@dataclass
class RangeExport:
    """Everything recorded between two dates, inclusive."""

    start_date: str
    end_date: str
    sessions: list[Session] = field(default_factory=list)
    commits: list[Commit] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    summary: RangeSummary = field(default_factory=RangeSummary)

    def to_dict(self) -> dict[str, Any]:
        return {
            "dateRange": {"startDate": self.start_date, "endDate": self.end_date},
            "sessions": [s.to_dict() for s in self.sessions],
            "commits": [c.to_dict() for c in self.commits],
            "tasks": [t.to_dict() for t in self.tasks],
            "summary": self.summary.to_dict(),
        }


# ============================================================================
# AGGREGATOR
# ============================================================================


class MetricsAggregator:
    """Read-only summary views over a DevTrackRepository."""

    def __init__(self, repository: DevTrackRepository):
        self.repository = repository

    async def dashboard(self, date: str) -> DashboardSummary:
        """Summarize one day. Division by zero sessions yields 0."""
        sessions, commits, tasks, goals = await asyncio.gather(
            self.repository.get_sessions_for_date(date),
            self.repository.get_commits_for_date(date),
            self.repository.get_tasks_for_date(date),
            self.repository.get_goals_for_date(date),
        )

        total_seconds = sum(s.duration or 0 for s in sessions)
        average = math.floor(total_seconds / len(sessions) / 60) if sessions else 0

        return DashboardSummary(
            sessions=len(sessions),
            total_time=math.floor(total_seconds / 60),
            average_session=average,
            commits=len(commits),
            lines_of_code=sum(c.lines_changed for c in commits),
            tasks_completed=sum(1 for t in tasks if t.completed),
            total_tasks=len(tasks),
            goals=goals,
        )

    async def weekly_aggregate(self, date: str) -> WeeklyAggregate:
        """Fold the metrics from `date` minus seven days through `date`."""
        week_start = shift_date(date, -WEEK_LOOKBACK_DAYS)
        aggregate = WeeklyAggregate()
        for metric in await self.repository.get_weekly_metrics(week_start, date):
            aggregate = aggregate.fold(metric)
        return aggregate

    async def issue_stats(self) -> IssueStats:
        """Counts by status and priority over all issues."""
        issues = await self.repository.get_issues()
        return IssueStats(
            total=len(issues),
            open=sum(1 for i in issues if i.status is IssueStatus.OPEN),
            in_progress=sum(1 for i in issues if i.status is IssueStatus.IN_PROGRESS),
            resolved=sum(1 for i in issues if i.status is IssueStatus.RESOLVED),
            critical=sum(1 for i in issues if i.priority is IssuePriority.CRITICAL),
            high=sum(1 for i in issues if i.priority is IssuePriority.HIGH),
        )

    async def enhanced_metrics(self, date: str) -> EnhancedMetrics:
        """Daily metrics (or defaults), weekly roll-up, issue and productivity stats."""
        parse_date(date)
        stored, weekly, issues, sessions = await asyncio.gather(
            self.repository.get_metrics_for_date(date),
            self.weekly_aggregate(date),
            self.issue_stats(),
            self.repository.get_sessions_for_date(date),
        )
        daily = stored or default_daily_metrics(date)

        total_hours = sum(s.duration or 0 for s in sessions) / 3600
        productivity = ProductivityStats(
            total_sessions=len(sessions),
            total_hours=total_hours,
            avg_session_length=round_half_up(total_hours * 60 / len(sessions)) if sessions else 0,
            lines_per_hour=round_half_up(daily.total_lines_written / total_hours) if total_hours > 0 else 0,
            bugs_per_day=daily.bugs_fixed,
            features_per_week=weekly.features_added / 7,
        )

        return EnhancedMetrics(
            daily=daily,
            weekly=weekly,
            issues=issues,
            productivity=productivity,
            daily_is_default=stored is None,
        )

    async def export_range(self, start_date: str, end_date: str) -> RangeExport:
        """
        Collect sessions and tasks day by day and commits in one range query.

        An end date before the start date yields empty session and task lists.
        """
        parse_date(start_date)
        parse_date(end_date)
        commits = await self.repository.get_commits_for_date_range(start_date, end_date)

        sessions: list[Session] = []
        tasks: list[Task] = []
        for day in iter_days(start_date, end_date):
            sessions.extend(await self.repository.get_sessions_for_date(day))
            tasks.extend(await self.repository.get_tasks_for_date(day))

        summary = RangeSummary(
            total_sessions=len(sessions),
            total_commits=len(commits),
            total_tasks=len(tasks),
            completed_tasks=sum(1 for t in tasks if t.completed),
            total_coding_time=sum(s.duration or 0 for s in sessions),
            total_lines_of_code=sum(c.lines_changed for c in commits),
        )
        logger.debug(f"Exported range {start_date}..{end_date}: {summary}")
        return RangeExport(
            start_date=start_date,
            end_date=end_date,
            sessions=sessions,
            commits=commits,
            tasks=tasks,
            summary=summary,
        )
