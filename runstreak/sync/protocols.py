"""Protocol types for ActivitySyncEngine dependencies.

Defines the interfaces that ActivitySyncEngine requires from its
collaborators, enabling easier testing and looser coupling.
"""

from typing import Iterable, Optional, Protocol, runtime_checkable

from ..activity import ActivityRecord
from ..storage.sync_state import SyncState


@runtime_checkable
class ActivitySourceProtocol(Protocol):
    """Interface for reading pages of activities from the remote API."""

    def get_activities(
        self, after: Optional[int] = None, page: int = 1, per_page: int = 200
    ) -> list[dict]: ...


@runtime_checkable
class SyncStateStoreProtocol(Protocol):
    """Interface for loading and committing the sync watermark."""

    def load(self) -> SyncState: ...

    def save(self, state: SyncState) -> None: ...

    def commit_page(
        self, state: SyncState, activities: Iterable[ActivityRecord]
    ) -> SyncState: ...
