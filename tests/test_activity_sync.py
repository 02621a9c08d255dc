"""Tests for the activity sync engine."""

import json
import shutil
import tempfile
from pathlib import Path
from unittest.mock import Mock

import pytest

from runstreak.errors import RateLimitError, TransientHttpError
from runstreak.storage.file_store import FileStore
from runstreak.storage.sync_state import SyncState, SyncStateManager
from runstreak.sync.protocols import ActivitySourceProtocol, SyncStateStoreProtocol
from runstreak.sync.sync_engine import ActivitySyncEngine

# 2024-01-01T00:00:00Z
BASE = 1704067200


def activity(activity_id: int, day: int, activity_type: str = "Run") -> dict:
    """API payload for an activity starting at 10:00 UTC on 2024-01-<day>."""
    return {
        "id": activity_id,
        "name": f"Activity {activity_id}",
        "type": activity_type,
        "start_date": f"2024-01-{day:02d}T10:00:00Z",
        "start_date_local": f"2024-01-{day:02d}T11:00:00Z",
        "distance": 5000.0,
        "moving_time": 1500,
        "elapsed_time": 1600,
        "total_elevation_gain": 12.0,
        "map": {"summary_polyline": "abc"},
    }


def ts(day: int) -> int:
    return BASE + (day - 1) * 86400 + 10 * 3600


class TestActivitySyncEngine:
    """Tests for ActivitySyncEngine."""

    def setup_method(self):
        """Set up engine with a mocked client over a temp data directory."""
        self.temp_dir = Path(tempfile.mkdtemp())
        self.store = FileStore(self.temp_dir)
        self.state = SyncStateManager("sync-state.json", self.store)
        self.client = Mock()
        self.engine = self._engine(self.client)

    def teardown_method(self):
        """Clean up."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _engine(self, client) -> ActivitySyncEngine:
        return ActivitySyncEngine(
            client=client,
            file_store=self.store,
            sync_state=self.state,
            activities_dir="activities",
            page_size=2,
        )

    def _activity_ids_on_disk(self) -> list[str]:
        return self.store.list_files("activities", ".json")

    def test_collaborators_satisfy_protocols(self):
        """The real state manager fits the engine's protocol."""
        assert isinstance(self.state, SyncStateStoreProtocol)
        assert isinstance(self.client, ActivitySourceProtocol)

    def test_first_sync_fetches_full_history(self):
        """A first sync has no lower bound and stops on a short page."""
        self.client.get_activities.side_effect = [
            [activity(1, 1), activity(2, 2)],
            [activity(3, 3), activity(4, 4)],
            [activity(5, 5)],
        ]

        stats = self.engine.sync()

        assert stats.activities_fetched == 5
        assert stats.activities_persisted == 5
        assert stats.pages_processed == 3
        assert stats.last_sync_timestamp == ts(5)
        calls = self.client.get_activities.call_args_list
        assert [c.kwargs for c in calls] == [
            {"after": None, "page": 1, "per_page": 2},
            {"after": None, "page": 2, "per_page": 2},
            {"after": None, "page": 3, "per_page": 2},
        ]
        assert self._activity_ids_on_disk() == ["1.json", "2.json", "3.json", "4.json", "5.json"]

    def test_persisted_file_is_full_payload(self):
        """Each activity file holds the complete API document."""
        self.client.get_activities.side_effect = [[activity(7, 3)]]

        self.engine.sync()

        assert self.store.read_json("activities/7.json") == activity(7, 3)

    def test_empty_first_page(self):
        """Nothing new leaves state untouched."""
        self.client.get_activities.return_value = []

        stats = self.engine.sync()

        assert stats.pages_processed == 0
        assert stats.activities_fetched == 0
        assert not self.store.exists("sync-state.json")

    def test_full_page_then_empty_page_terminates(self):
        """An empty page after a full one ends the loop."""
        self.client.get_activities.side_effect = [
            [activity(1, 1), activity(2, 2)],
            [],
        ]

        stats = self.engine.sync()

        assert stats.pages_processed == 1
        assert self.client.get_activities.call_count == 2

    def test_resume_uses_watermark(self):
        """A later sync asks only for activities after the watermark."""
        self.state.save(SyncState(ts(4), "4", 4, "2024-01-04T10:00:00+00:00"))
        self.client.get_activities.return_value = []

        self.engine.sync()

        self.client.get_activities.assert_called_once_with(after=ts(4), page=1, per_page=2)

    def test_non_run_activities_are_persisted(self):
        """Sync stores every type; filtering happens in analytics."""
        self.client.get_activities.side_effect = [
            [activity(1, 1, "Ride"), activity(2, 2, "Run")],
            [],
        ]

        stats = self.engine.sync()

        assert stats.activities_persisted == 2
        assert stats.runs_persisted == 1
        assert self._activity_ids_on_disk() == ["1.json", "2.json"]

    def test_watermark_from_max_of_unsorted_page(self):
        """Newest-first or shuffled pages still yield the page maximum."""
        self.client.get_activities.side_effect = [
            [activity(2, 2), activity(9, 9)],
            [activity(5, 5)],
        ]

        self.engine.sync()

        state = self.state.load()
        assert state.last_sync_timestamp == ts(9)
        assert state.last_activity_id == "9"
        assert state.total_activities == 3

    def test_state_committed_after_every_page(self):
        """The watermark on disk advances page by page and never decreases."""
        seen = []
        pages = [
            [activity(3, 3), activity(1, 1)],
            [activity(2, 2), activity(6, 6)],
            [activity(4, 4)],
        ]

        def fetch(after, page, per_page):
            seen.append(self.state.load().last_sync_timestamp)
            return pages[page - 1]

        self.engine = self._engine(Mock(get_activities=Mock(side_effect=fetch)))
        self.engine.sync()
        seen.append(self.state.load().last_sync_timestamp)

        assert seen == [0, ts(3), ts(6), ts(6)]
        assert seen == sorted(seen)

    def test_crash_mid_sync_keeps_committed_pages_and_resumes(self):
        """After a failure on page 2, a rerun resumes from page 1's watermark."""
        self.client.get_activities.side_effect = [
            [activity(1, 1), activity(2, 2)],
            TransientHttpError("Server error: HTTP 503", status=503),
        ]

        with pytest.raises(TransientHttpError):
            self.engine.sync()

        state = self.state.load()
        assert state.last_sync_timestamp == ts(2)
        assert self._activity_ids_on_disk() == ["1.json", "2.json"]

        resumed = Mock()
        resumed.get_activities.side_effect = [
            [activity(3, 3), activity(4, 4)],
            [activity(5, 5)],
        ]
        stats = self._engine(resumed).sync()

        assert resumed.get_activities.call_args_list[0].kwargs["after"] == ts(2)
        assert stats.activities_persisted == 3
        assert self.state.load().last_sync_timestamp == ts(5)
        assert len(self._activity_ids_on_disk()) == 5

    def test_rate_limit_error_propagates_with_progress_kept(self):
        """A 429 aborts the run; committed progress is durable."""
        self.client.get_activities.side_effect = [
            [activity(1, 1), activity(2, 2)],
            RateLimitError(retry_after=900),
        ]

        with pytest.raises(RateLimitError):
            self.engine.sync()

        assert self.state.load().last_sync_timestamp == ts(2)

    def test_resync_of_same_page_is_idempotent(self):
        """Fetching the same page twice leaves identical files, no duplicates."""
        page = [activity(1, 1), activity(2, 2)]
        self.client.get_activities.side_effect = [page, [], page, []]

        self.engine.sync()
        first = {
            name: (self.temp_dir / "activities" / name).read_bytes()
            for name in self._activity_ids_on_disk()
        }
        self.engine.sync()
        second = {
            name: (self.temp_dir / "activities" / name).read_bytes()
            for name in self._activity_ids_on_disk()
        }

        assert first == second
        assert len(second) == 2
        assert self.state.load().last_sync_timestamp == ts(2)

    def test_lost_activity_file_needs_state_reset(self):
        """Files older than the watermark are only refetched after a state reset."""
        history = [activity(1, 1), activity(2, 2)]
        self.client.get_activities.side_effect = [history, []]
        self.engine.sync()

        (self.temp_dir / "activities" / "1.json").unlink()
        self.client.get_activities.side_effect = [[]]
        self.engine.sync()
        assert self._activity_ids_on_disk() == ["2.json"]
        assert self.client.get_activities.call_args.kwargs["after"] == ts(2)

        (self.temp_dir / "sync-state.json").unlink()
        self.client.get_activities.side_effect = [history, []]
        self.engine.sync()
        assert self.client.get_activities.call_args.kwargs["after"] is None
        assert self._activity_ids_on_disk() == ["1.json", "2.json"]

    def test_count_local_activities(self):
        """Counts activity files on disk."""
        self.client.get_activities.side_effect = [[activity(1, 1)]]
        self.engine.sync()

        assert self.engine.count_local_activities() == 1
        assert json.loads((self.temp_dir / "activities" / "1.json").read_text())["id"] == 1
