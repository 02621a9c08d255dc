"""Strava OAuth token management.

Strava rotates the refresh token on every refresh. The new one must be
written to disk before anything else happens; losing it means the user has
to authorize the app again.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union
from urllib.parse import urlencode

import requests

from ..config import (
    Config,
    DEFAULT_TIMEOUT,
    STRAVA_AUTHORIZE_URL,
    STRAVA_SCOPE,
    STRAVA_TOKEN_URL,
    TOKEN_REFRESH_MARGIN,
)
from ..errors import AuthError, CorruptError, TransientHttpError
from ..storage.file_store import FileStore

__all__ = ["Credential", "TokenManager"]

logger = logging.getLogger(__name__)


@dataclass
class Credential:
    """OAuth tokens persisted in tokens.json."""

    access_token: str
    refresh_token: str
    expires_at: int  # Unix epoch seconds

    def expires_in(self, now: float) -> float:
        return self.expires_at - now

    def to_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Credential":
        return cls(
            access_token=str(data["access_token"]),
            refresh_token=str(data["refresh_token"]),
            expires_at=int(data["expires_at"]),
        )


class TokenManager:
    """Loads, refreshes and persists the single Strava credential.

    Refresh is proactive: a token with less than ``refresh_margin`` seconds
    of validity left is refreshed before it is handed out, so API calls never
    have to recover from a 401 mid-flight.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        tokens_path: Union[str, Path],
        file_store: Optional[FileStore] = None,
        token_url: str = STRAVA_TOKEN_URL,
        authorize_url: str = STRAVA_AUTHORIZE_URL,
        refresh_margin: int = TOKEN_REFRESH_MARGIN,
        timeout: int = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize token manager.

        Args:
            client_id: Strava application client ID
            client_secret: Strava application client secret
            tokens_path: Where the credential file lives
            file_store: Store used for atomic reads/writes
            token_url: OAuth token endpoint
            authorize_url: OAuth consent page
            refresh_margin: Refresh when fewer seconds than this remain
            timeout: Request timeout in seconds
            session: Optional requests session (for dependency injection/testing)
            clock: Wall clock returning Unix seconds
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.tokens_path = tokens_path
        self.file_store = file_store or FileStore()
        self.token_url = token_url
        self.authorize_url = authorize_url
        self.refresh_margin = refresh_margin
        self.timeout = timeout
        self._session = session or requests.Session()
        self._clock = clock

    @classmethod
    def from_config(
        cls,
        config: Config,
        file_store: Optional[FileStore] = None,
        session: Optional[requests.Session] = None,
    ) -> "TokenManager":
        """Build from configuration. Requires client credentials."""
        config.require_credentials()
        return cls(
            client_id=config.client_id,
            client_secret=config.client_secret,
            tokens_path=config.tokens_path,
            file_store=file_store,
            token_url=config.token_url,
            authorize_url=config.authorize_url,
            refresh_margin=config.refresh_margin,
            timeout=config.timeout,
            session=session,
        )

    def get_valid_access_token(self) -> str:
        """Return an access token valid for at least ``refresh_margin`` seconds.

        Raises:
            AuthError: If no credential is stored or the refresh is rejected
        """
        credential = self.load()
        expires_in = credential.expires_in(self._clock())
        if expires_in < self.refresh_margin:
            logger.info(f"Access token expires in {expires_in:.0f}s; refreshing")
            credential = self.refresh(credential.refresh_token)
        return credential.access_token

    def refresh(self, refresh_token: str) -> Credential:
        """Exchange a refresh token for a new credential and persist it.

        Raises:
            AuthError: If Strava rejects the refresh token
        """
        credential = self._request_token(
            {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
            },
            action="refresh Strava access token",
        )
        self.save(credential)
        logger.info("Access token refreshed; rotated refresh token saved")
        return credential

    def exchange_code(self, code: str) -> Credential:
        """Exchange a one-time authorization code for tokens and persist them."""
        credential = self._request_token(
            {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "code": code,
                "grant_type": "authorization_code",
            },
            action="exchange authorization code",
        )
        self.save(credential)
        logger.info(f"Authorization complete; tokens saved to {self.tokens_path}")
        return credential

    def authorization_url(self, redirect_uri: str = "http://localhost") -> str:
        """URL the user must visit to grant access."""
        params = urlencode(
            {
                "client_id": self.client_id,
                "redirect_uri": redirect_uri,
                "response_type": "code",
                "scope": STRAVA_SCOPE,
            }
        )
        return f"{self.authorize_url}?{params}"

    def load(self) -> Credential:
        """Load the stored credential.

        Raises:
            AuthError: If no credential file exists
            CorruptError: If the file is unreadable or incomplete
        """
        if not self.file_store.exists(self.tokens_path):
            raise AuthError(
                f"Tokens file not found at {self.tokens_path}. "
                "Complete the OAuth flow first."
            )
        data = self.file_store.read_json(self.tokens_path)
        try:
            return Credential.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise CorruptError(
                f"Tokens file {self.tokens_path} is incomplete: {e}",
                path=str(self.tokens_path),
            ) from e

    def save(self, credential: Credential) -> None:
        """Persist the credential atomically."""
        self.file_store.write_json(self.tokens_path, credential.to_dict())

    def _request_token(self, payload: dict, action: str) -> Credential:
        try:
            response = self._session.post(
                self.token_url, json=payload, timeout=self.timeout
            )
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            raise TransientHttpError(f"Failed to {action}: {e}") from e

        if not response.ok:
            raise AuthError(
                f"Failed to {action} ({response.status_code}): {response.text}. "
                "The refresh token may be invalid.",
                status=response.status_code,
                body=response.text,
            )

        try:
            return Credential.from_dict(response.json())
        except (KeyError, TypeError, ValueError) as e:
            raise AuthError(
                f"Unexpected token response while trying to {action}: {e}",
                status=response.status_code,
                body=response.text,
            ) from e

    def close(self) -> None:
        """Close the HTTP session."""
        self._session.close()
