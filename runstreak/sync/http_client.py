"""Strava API client - authenticated, rate-limited, retrying GET requests."""

import logging
from typing import Any, Optional
from urllib.parse import urlencode

import requests

from ..auth.tokens import TokenManager
from ..config import Config, DEFAULT_PAGE_SIZE, DEFAULT_TIMEOUT, STRAVA_API_URL
from ..errors import AuthError, ClientHttpError, RateLimitError, TransientHttpError
from .rate_limiter import RequestScheduler
from .retry import RetryConfig, retry_with_backoff

__all__ = ["StravaClient", "RateLimitUsage"]

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER = 60  # seconds, when a 429 carries no Retry-After


class RateLimitUsage:
    """Last read rate-limit usage reported by Strava.

    Headers look like ``X-ReadRateLimit-Limit: 100,1000`` and
    ``X-ReadRateLimit-Usage: 12,340`` (15-minute window, daily).
    """

    def __init__(self, limit: str, usage: str):
        self.limit = limit
        self.usage = usage

    def __repr__(self) -> str:
        return f"RateLimitUsage(usage={self.usage!r}, limit={self.limit!r})"

    @classmethod
    def from_headers(cls, headers) -> Optional["RateLimitUsage"]:
        limit = headers.get("X-ReadRateLimit-Limit")
        usage = headers.get("X-ReadRateLimit-Usage")
        if limit and usage:
            return cls(limit, usage)
        return None


def is_retryable(error: Exception) -> bool:
    """Only network failures and 5xx responses are worth retrying."""
    return isinstance(error, TransientHttpError)


class StravaClient:
    """Client for reading activities from the Strava API.

    Handles:
    - Bearer authentication via TokenManager (refreshed proactively)
    - Request budget via RequestScheduler (serialized, FIFO)
    - Retry with exponential backoff for transient failures only
    - Error classification into the runstreak error taxonomy
    """

    DEFAULT_RETRY_CONFIG = RetryConfig(
        max_retries=3,
        base_delay=1.0,
        max_delay=30.0,
        exponential_base=2.0,
        jitter=True,
    )

    USER_AGENT = "runstreak/0.3"

    def __init__(
        self,
        tokens: TokenManager,
        api_url: str = STRAVA_API_URL,
        scheduler: Optional[RequestScheduler] = None,
        retry_config: Optional[RetryConfig] = None,
        timeout: int = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        """Initialize Strava client.

        Args:
            tokens: Source of valid access tokens
            api_url: Strava API base URL
            scheduler: Request scheduler enforcing the rate budget
            retry_config: Configuration for retry with exponential backoff
            timeout: Request timeout in seconds
            session: Optional requests session (for dependency injection/testing)
        """
        self.tokens = tokens
        self.api_url = api_url.rstrip("/")
        self.scheduler = scheduler or RequestScheduler()
        self.retry_config = retry_config or self.DEFAULT_RETRY_CONFIG
        self.timeout = timeout
        self._session = session or requests.Session()
        self._owns_session = session is None
        self.last_rate_limit: Optional[RateLimitUsage] = None

    @classmethod
    def from_config(cls, config: Config, tokens: TokenManager) -> "StravaClient":
        limits = config.rate_limit
        return cls(
            tokens=tokens,
            api_url=config.api_url,
            scheduler=RequestScheduler(
                reservoir=limits.reservoir,
                refresh_interval=limits.refresh_interval,
                min_time=limits.min_time,
            ),
            timeout=config.timeout,
        )

    def _get_headers(self, access_token: str) -> dict:
        return {
            "Accept": "application/json",
            "User-Agent": self.USER_AGENT,
            "Authorization": f"Bearer {access_token}",
        }

    def request(self, endpoint: str) -> Any:
        """GET an API endpoint and return the parsed JSON body.

        Raises:
            RateLimitError: On 429 (never retried here)
            AuthError: On 401, or if no valid token can be obtained
            ClientHttpError: On other 4xx responses (never retried)
            TransientHttpError: On network/5xx failure after all retries
        """
        return self.scheduler.schedule(lambda: self._request_with_retry(endpoint))

    def _request_with_retry(self, endpoint: str) -> Any:
        access_token = self.tokens.get_valid_access_token()
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        headers = self._get_headers(access_token)

        def do_request() -> Any:
            try:
                response = self._session.get(url, headers=headers, timeout=self.timeout)
            except requests.exceptions.ConnectionError as e:
                raise TransientHttpError(f"Cannot connect to Strava API: {e}") from e
            except requests.exceptions.Timeout as e:
                raise TransientHttpError("Request to Strava API timed out") from e
            except requests.exceptions.RequestException as e:
                raise TransientHttpError(f"Request to Strava API failed: {e}") from e

            usage = RateLimitUsage.from_headers(response.headers)
            if usage:
                self.last_rate_limit = usage
                logger.info(f"Rate limit: {usage.usage} / {usage.limit}")

            status = response.status_code
            if status == 429:
                raise RateLimitError(self._retry_after(response))
            if status == 401:
                raise AuthError(
                    "Strava rejected the access token (401)",
                    status=status,
                    body=response.text,
                )
            if status >= 500:
                raise TransientHttpError(
                    f"Server error: HTTP {status}", status=status, body=response.text
                )
            if status >= 400:
                raise ClientHttpError(
                    f"HTTP {status}: {response.text}", status=status, body=response.text
                )

            if not response.content:
                return None
            try:
                return response.json()
            except ValueError as e:
                raise TransientHttpError(
                    f"Invalid JSON from Strava API (HTTP {status})",
                    status=status,
                    body=response.text,
                ) from e

        def log_failed_attempt(attempt: int, error: Exception, delay: float) -> None:
            logger.warning(
                f"Request failed (attempt {attempt + 1}): {error}. "
                f"Retrying in {delay:.1f}s..."
            )

        return retry_with_backoff(
            do_request,
            config=self.retry_config,
            should_retry=is_retryable,
            on_retry=log_failed_attempt,
        )

    @staticmethod
    def _retry_after(response: requests.Response) -> int:
        try:
            return int(response.headers.get("Retry-After", DEFAULT_RETRY_AFTER))
        except ValueError:
            return DEFAULT_RETRY_AFTER

    def get_activities(
        self,
        after: Optional[int] = None,
        page: int = 1,
        per_page: int = DEFAULT_PAGE_SIZE,
    ) -> list[dict]:
        """Fetch one page of the athlete's activities.

        Args:
            after: Only activities starting after this Unix timestamp;
                None fetches the full history
            page: 1-indexed page number
            per_page: Page size (Strava caps this at 200)
        """
        params: dict = {"page": page, "per_page": per_page}
        if after is not None:
            params["after"] = after
        return self.request(f"athlete/activities?{urlencode(params)}") or []

    def close(self) -> None:
        """Close the session if we own it."""
        if self._owns_session and self._session is not None:
            self._session.close()
            self._session = None

    def __enter__(self) -> "StravaClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
