"""Dashboard statistics package."""

from bookkeeper.dashboard.aggregator import DashboardAggregator, compute_dashboard_stats

__all__ = ["DashboardAggregator", "compute_dashboard_stats"]
