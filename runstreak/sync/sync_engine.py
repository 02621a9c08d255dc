"""Sync engine - incremental, resumable pull of Strava activities to disk."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Union

from ..activity import ActivityRecord
from ..config import DEFAULT_PAGE_SIZE
from ..storage.file_store import FileStore
from .protocols import ActivitySourceProtocol, SyncStateStoreProtocol

__all__ = ["ActivitySyncEngine", "SyncStats"]

logger = logging.getLogger(__name__)


@dataclass
class SyncStats:
    """Statistics from a sync run."""

    activities_fetched: int = 0
    activities_persisted: int = 0
    runs_persisted: int = 0
    pages_processed: int = 0
    last_sync_timestamp: int = 0


class ActivitySyncEngine:
    """Pages through new activities and writes one JSON file per activity.

    The watermark is committed after every page, so an interrupted run loses
    at most the page in flight and the next run resumes from there. Files
    are keyed by activity id, which makes refetching a page harmless.
    """

    def __init__(
        self,
        client: ActivitySourceProtocol,
        file_store: FileStore,
        sync_state: SyncStateStoreProtocol,
        activities_dir: Union[str, Path],
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self.client = client
        self.file_store = file_store
        self.sync_state = sync_state
        self.activities_dir = Path(activities_dir)
        self.page_size = page_size

    def sync(self) -> SyncStats:
        """Fetch and persist every activity newer than the watermark.

        Any fetch or storage error propagates immediately; pages already
        committed stay committed.
        """
        stats = SyncStats()
        state = self.sync_state.load()
        after = None if state.is_initial else state.last_sync_timestamp

        if after is None:
            logger.info("Starting sync from beginning of time (first sync)")
        else:
            since = datetime.fromtimestamp(after, timezone.utc).isoformat()
            logger.info(f"Starting sync from {since} (timestamp: {after})")

        page = 1
        while True:
            logger.info(f"Fetching page {page}...")
            payloads = self.client.get_activities(
                after=after, page=page, per_page=self.page_size
            )

            if not payloads:
                logger.info("No more activities to fetch (empty page)")
                break

            stats.activities_fetched += len(payloads)
            activities = [ActivityRecord.from_api(payload) for payload in payloads]

            runs = 0
            for activity in activities:
                self._persist(activity)
                stats.activities_persisted += 1
                if activity.is_run:
                    runs += 1
            stats.runs_persisted += runs

            state = self.sync_state.commit_page(state, activities)
            stats.pages_processed += 1
            logger.info(
                f"Page {page}: {len(activities)} activities saved ({runs} runs); "
                f"watermark {state.last_sync_timestamp}"
            )

            if len(payloads) < self.page_size:
                logger.info("Last page reached (partial page)")
                break

            page += 1

        stats.last_sync_timestamp = state.last_sync_timestamp
        logger.info(
            f"Sync complete: {stats.activities_persisted} activities saved "
            f"({stats.activities_fetched} fetched across {stats.pages_processed} pages)"
        )
        return stats

    def _persist(self, activity: ActivityRecord) -> None:
        """Upsert one activity file keyed by its id."""
        self.file_store.write_json(self.activities_dir / activity.filename, activity.to_dict())

    def count_local_activities(self) -> int:
        """Number of activity files currently on disk."""
        return len(self.file_store.list_files(self.activities_dir, ".json"))
