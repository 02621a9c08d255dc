"""Runstreak - incremental Strava activity sync and streak analytics."""

__version__ = "0.3.0"
