"""Shared API dependencies."""

from functools import lru_cache

from globetrek.app.config import get_settings
from globetrek.app.planner import TripPlanner, build_planner


@lru_cache
def get_planner() -> TripPlanner:
    """Process-wide planner built from settings."""
    return build_planner(get_settings())
