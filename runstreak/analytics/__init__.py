"""Analytics module - derived statistics over the synced activity history."""

from .compute_stats import (
    compute_advanced_stats,
    compute_stats,
    compute_streak_stats,
    load_runs,
)
from .streaks import (
    StreakResult,
    WeeklyConsistencyResult,
    calculate_daily_streaks,
    calculate_weekly_consistency,
)

__all__ = [
    "StreakResult",
    "WeeklyConsistencyResult",
    "calculate_daily_streaks",
    "calculate_weekly_consistency",
    "compute_stats",
    "compute_advanced_stats",
    "compute_streak_stats",
    "load_runs",
]
