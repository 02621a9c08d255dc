"""Error taxonomy shared by the storage, auth and sync layers.

Every error carries a ``hint`` telling the operator what to do next. Callers
match on the class, never on the message text.
"""

from typing import Optional

__all__ = [
    "RunstreakError",
    "ConfigError",
    "SyncLockedError",
    "AuthError",
    "RateLimitError",
    "HttpError",
    "TransientHttpError",
    "ClientHttpError",
    "StorageError",
    "NotFoundError",
    "CorruptError",
]


class RunstreakError(Exception):
    """Base class for all runstreak errors."""

    hint: str = ""


class ConfigError(RunstreakError):
    """Required configuration is missing or invalid."""

    hint = (
        "Check your environment: create a .env file with STRAVA_CLIENT_ID and "
        "STRAVA_CLIENT_SECRET (see https://www.strava.com/settings/api)."
    )


class SyncLockedError(RunstreakError):
    """Another sync process holds the data directory lock."""

    hint = "Wait for the running sync to finish before starting another one."


class AuthError(RunstreakError):
    """Credential missing, invalid, or refresh rejected by the provider."""

    hint = "Run `runstreak auth` to re-authorize with Strava."

    def __init__(
        self, message: str, status: Optional[int] = None, body: Optional[str] = None
    ):
        self.status = status
        self.body = body
        super().__init__(message)


class RateLimitError(RunstreakError):
    """HTTP 429. Never retried inline; the whole sync must back off."""

    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded. Retry after {retry_after} seconds")

    @property
    def hint(self) -> str:  # type: ignore[override]
        return (
            f"Wait at least {self.retry_after}s for the 15-minute rate-limit "
            "window to reset, then run sync again."
        )


class HttpError(RunstreakError):
    """Non-success response (or transport failure) from the remote API."""

    def __init__(
        self, message: str, status: Optional[int] = None, body: Optional[str] = None
    ):
        self.status = status
        self.body = body
        super().__init__(message)


class TransientHttpError(HttpError):
    """Network failure or 5xx response. Retryable."""

    hint = "Strava or the network is having trouble; run sync again later."


class ClientHttpError(HttpError):
    """4xx response other than 401/429. Not retryable."""

    hint = "The request was rejected; check the configuration and API scope."


class StorageError(RunstreakError):
    """Local file storage failure."""

    hint = "Check the data directory (STRAVA_DATA_DIR) permissions and contents."

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class NotFoundError(StorageError):
    """Requested file does not exist."""


class CorruptError(StorageError):
    """File exists but is not valid JSON or not the expected shape."""

    hint = (
        "Restore the damaged file from a backup. Sync only fetches activities newer "
        "than its watermark, so a lost activity file comes back only after deleting "
        "sync-state.json, which makes the next sync refetch the full history."
    )
