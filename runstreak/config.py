"""Configuration management for Runstreak."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from platformdirs import user_data_dir, user_log_dir

from .errors import ConfigError

__all__ = [
    "Config",
    "RateLimitSettings",
    "setup_logging",
    "load_env_file",
    "STRAVA_API_URL",
    "STRAVA_TOKEN_URL",
    "STRAVA_AUTHORIZE_URL",
]

logger = logging.getLogger(__name__)

APP_NAME = "runstreak"

# Strava endpoints
STRAVA_API_URL = "https://www.strava.com/api/v3"
STRAVA_TOKEN_URL = "https://www.strava.com/oauth/token"
STRAVA_AUTHORIZE_URL = "https://www.strava.com/oauth/authorize"
STRAVA_SCOPE = "activity:read_all"

# Sync settings
DEFAULT_PAGE_SIZE = 200
DEFAULT_TIMEOUT = 30  # seconds
TOKEN_REFRESH_MARGIN = 3600  # refresh when less than 1h of validity remains
DEFAULT_MIN_RUNS_PER_WEEK = 3

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class RateLimitSettings:
    """Client-side request budget (Strava: 100 reads per 15 minutes)."""

    reservoir: int = 100
    refresh_interval: float = 15 * 60  # seconds
    min_time: float = 0.2  # seconds between request starts


@dataclass
class Config:
    """Main configuration object.

    Built once at process start and handed to the components that need it.
    """

    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    data_dir: Path = field(default_factory=lambda: Config.get_default_data_dir())
    api_url: str = STRAVA_API_URL
    token_url: str = STRAVA_TOKEN_URL
    authorize_url: str = STRAVA_AUTHORIZE_URL
    page_size: int = DEFAULT_PAGE_SIZE
    timeout: int = DEFAULT_TIMEOUT
    refresh_margin: int = TOKEN_REFRESH_MARGIN
    min_runs_per_week: int = DEFAULT_MIN_RUNS_PER_WEEK
    rate_limit: RateLimitSettings = field(default_factory=RateLimitSettings)
    debug_mode: bool = False

    @classmethod
    def get_default_data_dir(cls) -> Path:
        """Get the per-user data directory path."""
        return Path(user_data_dir(APP_NAME))

    @classmethod
    def get_log_dir(cls) -> Path:
        """Get the log directory path."""
        return Path(user_log_dir(APP_NAME))

    @property
    def tokens_path(self) -> Path:
        return self.data_dir / "tokens.json"

    @property
    def sync_state_path(self) -> Path:
        return self.data_dir / "sync-state.json"

    @property
    def activities_dir(self) -> Path:
        return self.data_dir / "activities"

    @property
    def stats_dir(self) -> Path:
        return self.data_dir / "stats"

    @property
    def lock_path(self) -> Path:
        return self.data_dir / ".sync.lock"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Config":
        """Create Config from environment variables.

        Args:
            env: Mapping to read from. Defaults to ``os.environ`` after
                merging a ``.env`` file into it.
        """
        if env is None:
            load_env_file()
            env = os.environ

        data_dir = env.get("STRAVA_DATA_DIR")
        min_runs = env.get("RUNSTREAK_MIN_RUNS_PER_WEEK")
        try:
            min_runs_per_week = int(min_runs) if min_runs else DEFAULT_MIN_RUNS_PER_WEEK
        except ValueError:
            raise ConfigError(
                f"RUNSTREAK_MIN_RUNS_PER_WEEK must be an integer, got {min_runs!r}"
            ) from None

        return cls(
            client_id=env.get("STRAVA_CLIENT_ID") or None,
            client_secret=env.get("STRAVA_CLIENT_SECRET") or None,
            data_dir=Path(data_dir).expanduser() if data_dir else cls.get_default_data_dir(),
            min_runs_per_week=max(1, min_runs_per_week),
            debug_mode=env.get("RUNSTREAK_DEBUG", "").strip().lower() in _TRUTHY,
        )

    def require_credentials(self) -> None:
        """Raise ConfigError unless the Strava app credentials are set."""
        missing = [
            name
            for name, value in (
                ("STRAVA_CLIENT_ID", self.client_id),
                ("STRAVA_CLIENT_SECRET", self.client_secret),
            )
            if not value
        ]
        if missing:
            raise ConfigError(
                f"Missing required environment variable(s): {', '.join(missing)}"
            )


def load_env_file() -> Optional[Path]:
    """Merge a .env file into the process environment.

    ``STRAVA_ENV_FILE`` names the file explicitly; otherwise ``.env`` in the
    working directory is used. Variables already set in the environment win.
    """
    explicit = os.getenv("STRAVA_ENV_FILE")
    path = Path(explicit).expanduser() if explicit else Path.cwd() / ".env"
    if not path.is_file():
        return None
    load_dotenv(path, override=False)
    logger.debug(f"Loaded environment from {path}")
    return path


def setup_logging(debug: bool = False) -> None:
    """Configure logging."""
    log_dir = Config.get_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "runstreak.log"

    level = logging.DEBUG if debug else logging.INFO
    format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(),
        ],
    )

    # Reduce noise from libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
