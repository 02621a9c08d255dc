"""Daily streaks and weekly training consistency.

Both calculations work on UTC calendar days and are recomputed from the full
set of activity timestamps each time.
"""

from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Iterable, Optional, Union

from .date_utils import iso_midnight, utc_date, week_start

__all__ = [
    "StreakResult",
    "WeeklyConsistencyResult",
    "calculate_daily_streaks",
    "calculate_weekly_consistency",
]

DateLike = Union[datetime, date]


@dataclass
class StreakResult:
    """Consecutive-day activity streaks.

    ``current_streak`` is only non-zero while the streak is alive, i.e. the
    latest activity was today or yesterday (UTC).
    """

    current_streak: int = 0
    longest_streak: int = 0
    within_current_streak: bool = False
    current_streak_start: Optional[date] = None
    longest_streak_start: Optional[date] = None
    longest_streak_end: Optional[date] = None

    def to_dict(self) -> dict:
        return {
            "currentStreak": self.current_streak,
            "longestStreak": self.longest_streak,
            "withinCurrentStreak": self.within_current_streak,
            "currentStreakStart": _iso_or_none(self.current_streak_start),
            "longestStreakStart": _iso_or_none(self.longest_streak_start),
            "longestStreakEnd": _iso_or_none(self.longest_streak_end),
        }


@dataclass
class WeeklyConsistencyResult:
    """Runs of consecutive ISO weeks with at least ``min_runs_per_week`` activities."""

    current_consistency_streak: int = 0
    longest_consistency_streak: int = 0
    total_consistent_weeks: int = 0
    total_weeks: int = 0
    min_runs_per_week: int = 3

    def to_dict(self) -> dict:
        return {
            "currentStreak": self.current_consistency_streak,
            "longestStreak": self.longest_consistency_streak,
            "totalConsistentWeeks": self.total_consistent_weeks,
            "totalWeeks": self.total_weeks,
            "minRunsPerWeek": self.min_runs_per_week,
        }


def _iso_or_none(day: Optional[date]) -> Optional[str]:
    return iso_midnight(day) if day is not None else None


def _to_day(value: DateLike) -> date:
    if isinstance(value, datetime):
        return utc_date(value)
    return value


def calculate_daily_streaks(
    activity_dates: Iterable[DateLike], today: Optional[date] = None
) -> StreakResult:
    """Compute current and longest daily streaks.

    Args:
        activity_dates: Activity timestamps in any order; several on the
            same UTC day count once
        today: Reference UTC date for liveness; defaults to now

    Returns:
        StreakResult. Ties for the longest streak keep the earliest one.
    """
    days = sorted({_to_day(value) for value in activity_dates})
    if not days:
        return StreakResult()

    run_length = 1
    run_start = days[0]
    longest = 1
    longest_start = longest_end = days[0]

    for previous, current in zip(days, days[1:]):
        if (current - previous).days == 1:
            run_length += 1
        else:
            run_length = 1
            run_start = current

        if run_length > longest:
            longest = run_length
            longest_start = run_start
            longest_end = current

    if today is None:
        today = datetime.now(timezone.utc).date()
    within = (today - days[-1]).days in (0, 1)

    return StreakResult(
        current_streak=run_length if within else 0,
        longest_streak=longest,
        within_current_streak=within,
        current_streak_start=run_start if within else None,
        longest_streak_start=longest_start,
        longest_streak_end=longest_end,
    )


def calculate_weekly_consistency(
    activity_dates: Iterable[DateLike], min_runs_per_week: int = 3
) -> WeeklyConsistencyResult:
    """Compute streaks of consecutive weeks meeting an activity threshold.

    Weeks are ISO weeks (Monday start, UTC). Weeks with no activity have no
    bucket at all, so a missing week breaks a streak. The current streak is
    the one ending at the latest week that has any activity.
    """
    if min_runs_per_week < 1:
        raise ValueError("min_runs_per_week must be at least 1")

    counts = Counter(week_start(_to_day(value)) for value in activity_dates)
    if not counts:
        return WeeklyConsistencyResult(min_runs_per_week=min_runs_per_week)

    run_length = 0
    longest = 0
    consistent_weeks = 0
    previous_week: Optional[date] = None
    previous_met = False

    for week in sorted(counts):
        met = counts[week] >= min_runs_per_week
        if met:
            consistent_weeks += 1
            adjacent = previous_week is not None and (week - previous_week).days == 7
            run_length = run_length + 1 if adjacent and previous_met else 1
            longest = max(longest, run_length)
        else:
            run_length = 0
        previous_week = week
        previous_met = met

    return WeeklyConsistencyResult(
        current_consistency_streak=run_length,
        longest_consistency_streak=longest,
        total_consistent_weeks=consistent_weeks,
        total_weeks=len(counts),
        min_runs_per_week=min_runs_per_week,
    )
