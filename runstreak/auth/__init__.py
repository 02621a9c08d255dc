"""Auth module - OAuth credential lifecycle for the Strava API."""

from .tokens import Credential, TokenManager

__all__ = ["Credential", "TokenManager"]
