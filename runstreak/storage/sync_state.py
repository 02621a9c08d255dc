"""Sync state with high-watermark tracking for incremental sync."""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Union

from ..activity import ActivityRecord
from ..errors import CorruptError
from .file_store import FileStore

__all__ = ["SyncState", "SyncStateManager"]

logger = logging.getLogger(__name__)


@dataclass
class SyncState:
    """Cursor into the remote activity history.

    ``last_sync_timestamp == 0`` means nothing has been synced yet.
    """

    last_sync_timestamp: int = 0
    last_activity_id: str = ""
    total_activities: int = 0
    last_sync_date: str = ""

    @property
    def is_initial(self) -> bool:
        return self.last_sync_timestamp == 0

    def to_dict(self) -> dict:
        return {
            "last_sync_timestamp": self.last_sync_timestamp,
            "last_activity_id": self.last_activity_id,
            "total_activities": self.total_activities,
            "last_sync_date": self.last_sync_date,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SyncState":
        return cls(
            last_sync_timestamp=int(data.get("last_sync_timestamp") or 0),
            last_activity_id=str(data.get("last_activity_id") or ""),
            total_activities=int(data.get("total_activities") or 0),
            last_sync_date=str(data.get("last_sync_date") or ""),
        )


class SyncStateManager:
    """Loads and commits the sync watermark through a FileStore."""

    def __init__(
        self,
        state_path: Union[str, Path],
        file_store: FileStore,
        clock: Callable[[], float] = time.time,
    ):
        self.state_path = state_path
        self.file_store = file_store
        self._clock = clock

    def load(self) -> SyncState:
        """Load sync state, or the zero state if none was saved yet.

        Raises:
            CorruptError: If the state file is not valid JSON or not a state object
        """
        if not self.file_store.exists(self.state_path):
            return SyncState()
        data = self.file_store.read_json(self.state_path)
        try:
            return SyncState.from_dict(data)
        except (AttributeError, TypeError, ValueError) as e:
            raise CorruptError(
                f"Sync state file {self.state_path} is malformed: {e}",
                path=str(self.state_path),
            ) from e

    def save(self, state: SyncState) -> None:
        """Save sync state atomically."""
        self.file_store.write_json(self.state_path, state.to_dict())

    def commit_page(
        self, state: SyncState, activities: Iterable[ActivityRecord]
    ) -> SyncState:
        """Advance the watermark past a fully persisted page and save it.

        The watermark is the maximum start time over the whole page, since
        pages are not guaranteed to be sorted. It never moves backwards.
        """
        activities = list(activities)
        if not activities:
            return state

        newest = max(activities, key=lambda a: a.start_timestamp)
        if newest.start_timestamp > state.last_sync_timestamp:
            watermark = newest.start_timestamp
            last_id = str(newest.id)
        else:
            watermark = state.last_sync_timestamp
            last_id = state.last_activity_id

        new_state = SyncState(
            last_sync_timestamp=watermark,
            last_activity_id=last_id,
            total_activities=state.total_activities + len(activities),
            last_sync_date=datetime.fromtimestamp(self._clock(), timezone.utc).isoformat(),
        )
        self.save(new_state)
        logger.debug(
            f"Committed watermark {new_state.last_sync_timestamp} "
            f"(activity {new_state.last_activity_id})"
        )
        return new_state
