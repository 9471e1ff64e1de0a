"""Tests for dashboard and metrics aggregation."""

import pytest

from devtrack.analytics import MetricsAggregator, WeeklyAggregate, round_half_up
from devtrack.exceptions import ValidationError


@pytest.fixture
def aggregator(repo):
    return MetricsAggregator(repo)


async def _seed_day(repo):
    await repo.create_session("a", start_time="2024-01-15T09:00:00Z", duration=3600)
    await repo.create_session("b", start_time="2024-01-15T14:00:00Z", duration=1800)
    await repo.create_session("other day", start_time="2024-01-14T09:00:00Z", duration=999)
    await repo.create_commit("r", "one", 10, timestamp="2024-01-15T10:00:00Z")
    await repo.create_commit("r", "two", 20, timestamp="2024-01-15T15:00:00Z")
    task = await repo.create_task("done", timestamp="2024-01-15T08:00:00Z")
    await repo.update_task(task.id, {"completed": True})
    await repo.create_task("open", timestamp="2024-01-15T08:30:00Z")


class TestRounding:
    """Tests for half-up rounding."""

    def test_half_up(self):
        """Halves round up, including negative halves."""
        assert round_half_up(2.5) == 3
        assert round_half_up(82.5) == 83
        assert round_half_up(-2.5) == -2
        assert round_half_up(2.49) == 2


class TestDashboard:
    """Tests for the one-day dashboard."""

    @pytest.mark.asyncio
    async def test_summary(self, repo, aggregator):
        """Test dashboard counts for a seeded day."""
        await _seed_day(repo)
        await repo.create_or_update_goals("2024-01-15", 240, 5, 4)

        summary = await aggregator.dashboard("2024-01-15")
        assert summary.sessions == 2
        assert summary.total_time == 90
        assert summary.average_session == 45
        assert summary.commits == 2
        assert summary.lines_of_code == 30
        assert summary.tasks_completed == 1
        assert summary.total_tasks == 2
        assert summary.goals.coding_time_target == 240

    @pytest.mark.asyncio
    async def test_empty_day(self, aggregator):
        """An empty store gives zero counts and no goals."""
        summary = await aggregator.dashboard("2024-01-15")
        assert summary.to_dict() == {
            "sessions": 0,
            "totalTime": 0,
            "averageSession": 0,
            "commits": 0,
            "linesOfCode": 0,
            "tasksCompleted": 0,
            "totalTasks": 0,
            "goals": None,
        }

    @pytest.mark.asyncio
    async def test_sessions_without_duration(self, repo, aggregator):
        """Sessions with no duration count but add no time."""
        await repo.create_session("running", start_time="2024-01-15T09:00:00Z", is_active=True)
        summary = await aggregator.dashboard("2024-01-15")
        assert summary.sessions == 1
        assert summary.total_time == 0


class TestEnhancedMetrics:
    """Tests for daily, weekly, issue and productivity metrics."""

    @pytest.mark.asyncio
    async def test_default_daily_record(self, aggregator):
        """Without a stored record the daily view uses default scores."""
        result = await aggregator.enhanced_metrics("2024-01-15")
        daily = result.to_dict()["daily"]
        assert "id" not in daily
        assert "createdAt" not in daily
        assert daily["date"] == "2024-01-15"
        assert daily["codeQualityScore"] == 85
        assert daily["testsCoverage"] == 70
        assert daily["performanceScore"] == 80
        assert daily["bugsFixed"] == 0

        weekly = result.weekly
        assert weekly == WeeklyAggregate()
        assert (weekly.avg_quality_score, weekly.avg_tests_coverage, weekly.avg_performance_score) == (85, 70, 80)

    @pytest.mark.asyncio
    async def test_stored_daily_record(self, repo, aggregator):
        """A stored record is returned with its id."""
        stored = await repo.create_or_update_metrics("2024-01-15", bugs_fixed=4)
        result = await aggregator.enhanced_metrics("2024-01-15")
        daily = result.to_dict()["daily"]
        assert daily["id"] == stored.id
        assert daily["bugsFixed"] == 4
        assert result.productivity.bugs_per_day == 4

    @pytest.mark.asyncio
    async def test_weekly_fold(self, repo, aggregator):
        """Scores fold pairwise in date order; counters sum over date-7..date."""
        await repo.create_or_update_metrics(
            "2024-01-07", total_lines_written=1000, code_quality_score=10
        )
        await repo.create_or_update_metrics(
            "2024-01-15",
            total_lines_written=50,
            features_added=7,
            code_quality_score=75,
            tests_coverage=70,
            performance_score=80,
        )
        await repo.create_or_update_metrics(
            "2024-01-10",
            total_lines_written=100,
            code_quality_score=95,
            tests_coverage=70,
            performance_score=80,
        )

        weekly = (await aggregator.enhanced_metrics("2024-01-15")).weekly
        assert weekly.lines_written == 150
        assert weekly.features_added == 7
        # (85 + 95) / 2 = 90, then (90 + 75) / 2 = 82.5 -> 83
        assert weekly.avg_quality_score == 83
        assert weekly.avg_tests_coverage == 70
        assert weekly.avg_performance_score == 80

    @pytest.mark.asyncio
    async def test_window_includes_lower_bound(self, repo, aggregator):
        """The day seven days back is inside the window."""
        await repo.create_or_update_metrics("2024-01-08", bugs_fixed=2)
        weekly = await aggregator.weekly_aggregate("2024-01-15")
        assert weekly.bugs_fixed == 2

    @pytest.mark.asyncio
    async def test_productivity(self, repo, aggregator):
        """Test productivity figures from sessions and metrics."""
        await _seed_day(repo)
        await repo.create_or_update_metrics("2024-01-15", total_lines_written=300, features_added=14)

        productivity = (await aggregator.enhanced_metrics("2024-01-15")).productivity
        assert productivity.total_sessions == 2
        assert productivity.total_hours == 1.5
        assert productivity.avg_session_length == 45
        assert productivity.lines_per_hour == 200
        assert productivity.features_per_week == 2.0

    @pytest.mark.asyncio
    async def test_productivity_without_sessions(self, aggregator):
        """No sessions means zero hours and no division by zero."""
        productivity = (await aggregator.enhanced_metrics("2024-01-15")).productivity
        assert productivity.total_hours == 0
        assert productivity.avg_session_length == 0
        assert productivity.lines_per_hour == 0

    @pytest.mark.asyncio
    async def test_issue_stats(self, repo, aggregator):
        """Issue counts by status and priority."""
        await repo.create_issue("a", priority="critical")
        await repo.create_issue("b", status="in-progress", priority="high")
        await repo.create_issue("c", status="resolved")
        await repo.create_issue("d", status="closed", priority="high")

        issues = (await aggregator.enhanced_metrics("2024-01-15")).issues
        assert issues.to_dict() == {
            "total": 4,
            "open": 1,
            "inProgress": 1,
            "resolved": 1,
            "critical": 1,
            "high": 2,
        }

    @pytest.mark.asyncio
    async def test_invalid_date(self, aggregator):
        """A malformed date is rejected."""
        with pytest.raises(ValidationError):
            await aggregator.enhanced_metrics("not-a-date")


class TestExportRange:
    """Tests for date range exports."""

    @pytest.mark.asyncio
    async def test_range(self, repo, aggregator):
        """Test export over an inclusive date range."""
        await _seed_day(repo)
        await repo.create_commit("r", "edge", 5, timestamp="2024-01-16T23:59:59Z")
        await repo.create_commit("r", "later", 5, timestamp="2024-01-17T00:00:01Z")

        export = await aggregator.export_range("2024-01-14", "2024-01-16")
        data = export.to_dict()
        assert data["dateRange"] == {"startDate": "2024-01-14", "endDate": "2024-01-16"}
        assert [s["projectName"] for s in data["sessions"]] == ["other day", "a", "b"]
        assert data["summary"] == {
            "totalSessions": 3,
            "totalCommits": 3,
            "totalTasks": 2,
            "completedTasks": 1,
            "totalCodingTime": 6399,
            "totalLinesOfCode": 35,
        }

    @pytest.mark.asyncio
    async def test_reversed_range_is_empty(self, repo, aggregator):
        """An end date before the start date exports nothing."""
        await _seed_day(repo)
        export = await aggregator.export_range("2024-01-16", "2024-01-14")
        assert export.sessions == []
        assert export.tasks == []
        assert export.summary.total_sessions == 0


class TestRestoredNullCounters:
    """Tests for views over backups that store unset counters as null."""

    @pytest.mark.asyncio
    async def test_enhanced_metrics_after_null_counters(self, repo, aggregator):
        """Null metric counters load as 0 and fold without errors."""
        await repo.import_data(
            {
                "metrics": [
                    {
                        "id": 1,
                        "date": "2024-01-15",
                        "totalLinesWritten": None,
                        "bugsFixed": None,
                        "featuresAdded": None,
                        "codeQualityScore": None,
                        "testsCoverage": 60,
                        "performanceScore": None,
                        "createdAt": "2024-01-15T08:00:00.000Z",
                    }
                ],
                "sessions": [
                    {
                        "id": 1,
                        "projectName": "a",
                        "startTime": "2024-01-15T09:00:00Z",
                        "duration": 3600,
                        "isActive": None,
                        "linesWritten": None,
                    }
                ],
            }
        )

        result = await aggregator.enhanced_metrics("2024-01-15")
        assert result.daily.bugs_fixed == 0
        assert result.weekly.lines_written == 0
        # (85 + 0) / 2 = 42.5 -> 43
        assert result.weekly.avg_quality_score == 43
        assert result.weekly.avg_tests_coverage == 65
        assert result.productivity.lines_per_hour == 0
        assert (await repo.get_session(1)).is_active is False

    @pytest.mark.asyncio
    async def test_dashboard_after_null_commit_lines(self, repo, aggregator):
        """A commit restored with null line counts adds nothing to linesOfCode."""
        await repo.import_data(
            {
                "commits": [
                    {
                        "id": 1,
                        "repository": "r",
                        "message": "legacy",
                        "linesChanged": None,
                        "linesAdded": None,
                        "filesChanged": None,
                        "timestamp": "2024-01-15T10:00:00.000Z",
                    },
                    {
                        "id": 2,
                        "repository": "r",
                        "message": "new",
                        "linesChanged": 12,
                        "timestamp": "2024-01-15T11:00:00.000Z",
                    },
                ],
                "goals": [
                    {
                        "id": 1,
                        "date": "2024-01-15",
                        "codingTimeTarget": None,
                        "commitsTarget": 3,
                        "tasksTarget": None,
                    }
                ],
            }
        )

        summary = await aggregator.dashboard("2024-01-15")
        assert summary.commits == 2
        assert summary.lines_of_code == 12
        assert summary.goals.coding_time_target == 0
        commit = (await repo.get_commits_for_date("2024-01-15"))[0]
        assert commit.files_changed == 1
