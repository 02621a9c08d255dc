"""Sync module - reads activities from Strava and persists them locally."""

from .http_client import StravaClient
from .protocols import ActivitySourceProtocol, SyncStateStoreProtocol
from .rate_limiter import RequestScheduler
from .retry import RetryConfig, retry_with_backoff
from .sync_engine import ActivitySyncEngine, SyncStats

__all__ = [
    "StravaClient",
    "RequestScheduler",
    "RetryConfig",
    "retry_with_backoff",
    "ActivitySyncEngine",
    "SyncStats",
    "ActivitySourceProtocol",
    "SyncStateStoreProtocol",
]
