"""Activity records as returned by the Strava activities endpoint."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

__all__ = ["ActivityRecord", "parse_timestamp", "to_unix_seconds"]


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp into an aware UTC datetime.

    Strava uses a trailing ``Z``; naive values are taken as UTC.
    """
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_unix_seconds(value: str) -> int:
    """Convert an ISO 8601 timestamp to whole Unix epoch seconds."""
    return int(parse_timestamp(value).timestamp())


@dataclass
class ActivityRecord:
    """One remote activity.

    ``raw`` keeps the full API payload; it is what gets persisted so that
    fields not modelled here survive a round trip.
    """

    id: int
    name: str
    type: str
    start_date: datetime
    start_date_local: Optional[str] = None
    distance: float = 0.0  # meters
    moving_time: int = 0  # seconds
    elapsed_time: int = 0  # seconds
    total_elevation_gain: float = 0.0  # meters
    start_latlng: Optional[list[float]] = None
    end_latlng: Optional[list[float]] = None
    summary_polyline: Optional[str] = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def is_run(self) -> bool:
        return self.type == "Run"

    @property
    def start_timestamp(self) -> int:
        """Start time as Unix epoch seconds."""
        return int(self.start_date.timestamp())

    @property
    def filename(self) -> str:
        return f"{self.id}.json"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "ActivityRecord":
        """Create from an API (or persisted) activity payload."""
        route = data.get("map") or {}
        return cls(
            id=int(data["id"]),
            name=data.get("name", ""),
            type=data.get("type", ""),
            start_date=parse_timestamp(data["start_date"]),
            start_date_local=data.get("start_date_local"),
            distance=float(data.get("distance") or 0.0),
            moving_time=int(data.get("moving_time") or 0),
            elapsed_time=int(data.get("elapsed_time") or 0),
            total_elevation_gain=float(data.get("total_elevation_gain") or 0.0),
            start_latlng=data.get("start_latlng") or None,
            end_latlng=data.get("end_latlng") or None,
            summary_polyline=route.get("summary_polyline") or None,
            raw=data,
        )

    def to_dict(self) -> dict[str, Any]:
        """Payload to persist: the original API document."""
        return self.raw
