"""
DevTrack analytics - dashboard and metrics roll-ups.
"""

from devtrack.analytics.aggregator import (
    DashboardSummary,
    EnhancedMetrics,
    IssueStats,
    MetricsAggregator,
    ProductivityStats,
    RangeExport,
    RangeSummary,
    WeeklyAggregate,
    default_daily_metrics,
    round_half_up,
)

__all__ = [
    "MetricsAggregator",
    "DashboardSummary",
    "WeeklyAggregate",
    "IssueStats",
    "ProductivityStats",
    "EnhancedMetrics",
    "RangeSummary",
    "RangeExport",
    "default_daily_metrics",
    "round_half_up",
]
