"""Statistics computation from synced activity files.

Reads the per-activity JSON files, keeps runs only, and writes static JSON
artifacts for the rendering layer. Field names in these files are consumed
by external widgets and must not change.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Union

from ..activity import ActivityRecord
from ..config import DEFAULT_MIN_RUNS_PER_WEEK
from ..errors import CorruptError
from ..storage.file_store import FileStore
from .date_utils import (
    MONTH_LABELS,
    format_month_label,
    iso_midnight,
    month_start,
    utc_date,
    week_start,
    year_start,
)
from .streaks import (
    StreakResult,
    WeeklyConsistencyResult,
    calculate_daily_streaks,
    calculate_weekly_consistency,
)

__all__ = ["load_runs", "compute_stats", "compute_advanced_stats", "compute_streak_stats"]

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

STATS_FILES = [
    "weekly-distance.json",
    "all-time-totals.json",
    "monthly-stats.json",
    "yearly-stats.json",
    "metadata.json",
]
ADVANCED_STATS_FILES = [
    "year-over-year.json",
    "time-of-day.json",
    "seasonal-trends.json",
]
STREAKS_FILE = "streaks.json"


@dataclass
class _Totals:
    distance_m: float = 0.0
    run_count: int = 0
    moving_time_s: float = 0.0
    elevation_gain: float = 0.0

    def add(self, run: ActivityRecord) -> None:
        self.distance_m += run.distance
        self.run_count += 1
        self.moving_time_s += run.moving_time
        self.elevation_gain += run.total_elevation_gain

    @property
    def total_km(self) -> float:
        return self.distance_m / 1000

    @property
    def avg_pace_min_per_km(self) -> float:
        if self.distance_m <= 0:
            return 0
        return (self.moving_time_s / 60) / (self.distance_m / 1000)

    def to_period_dict(self) -> dict:
        return {
            "totalKm": self.total_km,
            "runCount": self.run_count,
            "avgPaceMinPerKm": self.avg_pace_min_per_km,
            "elevationGain": self.elevation_gain,
            "totalMovingTimeMin": self.moving_time_s / 60,
        }


def load_runs(file_store: FileStore, activities_dir: PathLike) -> list[ActivityRecord]:
    """Load all persisted activities of type Run, oldest first.

    Raises:
        CorruptError: If an activity file is not valid JSON or not an activity
    """
    activities_dir = Path(activities_dir)
    names = file_store.list_files(activities_dir, ".json")
    runs = []
    for name in names:
        path = activities_dir / name
        data = file_store.read_json(path)
        try:
            activity = ActivityRecord.from_api(data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise CorruptError(
                f"Activity file {path} is not a valid activity: {e!r}", path=str(path)
            ) from e
        if activity.is_run:
            runs.append(activity)
    runs.sort(key=lambda a: a.start_date)
    logger.info(f"Loaded {len(runs)} run activities from {len(names)} files")
    return runs


def _group(
    runs: list[ActivityRecord], bucket: Callable[[date], date]
) -> list[tuple[date, _Totals]]:
    groups: dict[date, _Totals] = {}
    for run in runs:
        key = bucket(utc_date(run.start_date))
        groups.setdefault(key, _Totals()).add(run)
    return sorted(groups.items())


def compute_stats(
    file_store: FileStore,
    activities_dir: PathLike,
    stats_dir: PathLike,
    now: Optional[datetime] = None,
) -> list[str]:
    """Write weekly/monthly/yearly aggregates, all-time totals and metadata.

    Returns:
        Names of the files written (empty if there are no runs)
    """
    runs = load_runs(file_store, activities_dir)
    if not runs:
        logger.info("No activities to process")
        return []

    stats_dir = Path(stats_dir)
    generated_at = (now or datetime.now(timezone.utc)).isoformat()

    weekly = [
        {"weekStartISO": iso_midnight(start), **totals.to_period_dict()}
        for start, totals in _group(runs, week_start)
    ]
    monthly = [
        {
            "periodStart": iso_midnight(start),
            "periodLabel": format_month_label(start),
            **totals.to_period_dict(),
        }
        for start, totals in _group(runs, month_start)
    ]
    yearly = [
        {
            "periodStart": iso_midnight(start),
            "periodLabel": str(start.year),
            **totals.to_period_dict(),
        }
        for start, totals in _group(runs, year_start)
    ]

    overall = _Totals()
    for run in runs:
        overall.add(run)
    first = runs[0].raw.get("start_date")
    last = runs[-1].raw.get("start_date")

    all_time = {
        "totalKm": overall.total_km,
        "totalRuns": overall.run_count,
        "totalHours": overall.moving_time_s / 3600,
        "totalElevation": overall.elevation_gain,
        "avgPaceMinPerKm": overall.avg_pace_min_per_km,
        "firstActivityDate": first,
        "lastActivityDate": last,
        "generatedAt": generated_at,
    }
    metadata = {
        "generatedAt": generated_at,
        "activityCount": len(runs),
        "dateRange": {"from": first, "to": last},
        "files": STATS_FILES,
    }

    outputs = dict(
        zip(STATS_FILES, [weekly, all_time, monthly, yearly, metadata])
    )
    for name, payload in outputs.items():
        file_store.write_json(stats_dir / name, payload)

    logger.info(
        f"Generated statistics: {len(weekly)} weeks, {len(monthly)} months, "
        f"{len(yearly)} years; {overall.run_count} runs, {overall.total_km:.2f} km "
        f"-> {stats_dir}"
    )
    return list(outputs)


def compute_streak_stats(
    file_store: FileStore,
    activities_dir: PathLike,
    stats_dir: PathLike,
    min_runs_per_week: int = DEFAULT_MIN_RUNS_PER_WEEK,
    today: Optional[date] = None,
) -> tuple[StreakResult, WeeklyConsistencyResult]:
    """Compute daily streaks and weekly consistency and write streaks.json."""
    runs = load_runs(file_store, activities_dir)
    start_dates = [run.start_date for run in runs]

    streaks = calculate_daily_streaks(start_dates, today=today)
    consistency = calculate_weekly_consistency(start_dates, min_runs_per_week)

    payload = streaks.to_dict()
    payload["weeklyConsistency"] = consistency.to_dict()
    file_store.write_json(Path(stats_dir) / STREAKS_FILE, payload)

    logger.info(
        f"Streaks: current {streaks.current_streak}, longest {streaks.longest_streak}; "
        f"consistent weeks {consistency.total_consistent_weeks}/{consistency.total_weeks} "
        f"(>= {min_runs_per_week} runs)"
    )
    return streaks, consistency


RECENT_YEARS = 3
TIME_OF_DAY_BUCKETS = [
    ("Morning (6am-12pm)", 6, 12),
    ("Afternoon (12pm-6pm)", 12, 18),
    ("Evening (6pm-10pm)", 18, 22),
]
NIGHT_BUCKET = "Night (10pm-6am)"


@dataclass
class _Volume:
    total_km: float = 0.0
    total_runs: int = 0
    total_hours: float = 0.0

    def add(self, run: ActivityRecord) -> None:
        self.total_km += run.distance / 1000
        self.total_runs += 1
        self.total_hours += run.moving_time / 3600

    def to_dict(self) -> dict:
        return {
            "totalKm": self.total_km,
            "totalRuns": self.total_runs,
            "totalHours": self.total_hours,
        }


def _time_of_day(hour: int) -> str:
    """Bucket label for a UTC start hour."""
    for label, start, end in TIME_OF_DAY_BUCKETS:
        if start <= hour < end:
            return label
    return NIGHT_BUCKET


def compute_advanced_stats(
    file_store: FileStore, activities_dir: PathLike, stats_dir: PathLike
) -> list[str]:
    """Write year-over-year, time-of-day and seasonal trend artifacts.

    Year-over-year and seasonal trends cover the most recent three years that
    have runs. Year-over-year always lists all twelve months, with zero
    totals where a year has no runs. Time-of-day covers every run.

    Returns:
        Names of the files written (empty if there are no runs)
    """
    runs = load_runs(file_store, activities_dir)
    if not runs:
        logger.info("No activities to process")
        return []

    by_month: dict[tuple[int, int], _Volume] = {}
    for run in runs:
        key = (run.start_date.year, run.start_date.month)
        by_month.setdefault(key, _Volume()).add(run)
    years = sorted({year for year, _ in by_month})[-RECENT_YEARS:]

    year_over_year = [
        {
            "month": month,
            "monthLabel": MONTH_LABELS[month - 1],
            "years": {
                str(year): by_month.get((year, month), _Volume()).to_dict()
                for year in years
            },
        }
        for month in range(1, 13)
    ]

    labels = [label for label, _, _ in TIME_OF_DAY_BUCKETS] + [NIGHT_BUCKET]
    counts = {label: 0 for label in labels}
    distances = {label: 0.0 for label in labels}
    for run in runs:
        label = _time_of_day(run.start_date.hour)
        counts[label] += 1
        distances[label] += run.distance / 1000
    time_of_day = [
        {
            "period": label,
            "runCount": counts[label],
            "totalKm": distances[label],
            "percentage": counts[label] / len(runs) * 100,
        }
        for label in labels
    ]

    seasonal = [
        {"year": year, "month": month, **volume.to_dict()}
        for (year, month), volume in sorted(by_month.items())
        if year in years
    ]

    stats_dir = Path(stats_dir)
    outputs = dict(zip(ADVANCED_STATS_FILES, [year_over_year, time_of_day, seasonal]))
    for name, payload in outputs.items():
        file_store.write_json(stats_dir / name, payload)

    logger.info(
        f"Generated advanced statistics: 12 months across {len(years)} years, "
        f"{len(labels)} time-of-day buckets, {len(seasonal)} seasonal entries -> {stats_dir}"
    )
    return list(outputs)
