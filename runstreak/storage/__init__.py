"""Storage module - atomic JSON files and the sync watermark."""

from .file_store import FileStore
from .sync_state import SyncState, SyncStateManager

__all__ = ["FileStore", "SyncState", "SyncStateManager"]
