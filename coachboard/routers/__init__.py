"""API routers for all endpoints."""

from coachboard.routers import analytics

__all__ = ["analytics"]
