"""UTC calendar helpers for analytics.

All bucketing is done on the UTC calendar so results do not depend on the
machine's local timezone.
"""

from datetime import date, datetime, timedelta, timezone

MONTH_LABELS = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]


def to_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_date(value: datetime) -> date:
    """UTC calendar date of a timestamp."""
    return to_utc(value).date()


def week_start(day: date) -> date:
    """Monday of the ISO week containing ``day``."""
    return day - timedelta(days=day.weekday())


def month_start(day: date) -> date:
    return day.replace(day=1)


def year_start(day: date) -> date:
    return day.replace(month=1, day=1)


def iso_midnight(day: date) -> str:
    """``2024-01-01`` -> ``2024-01-01T00:00:00.000Z``."""
    return f"{day.isoformat()}T00:00:00.000Z"


def format_month_label(day: date) -> str:
    """``Jan 2024``"""
    return f"{MONTH_LABELS[day.month - 1]} {day.year}"
