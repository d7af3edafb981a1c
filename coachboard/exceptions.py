"""
Exception hierarchy for the analytics engine and its collaborators.

Aggregations never raise on well-formed input; these cover the edges around
them: repository fetch failures and invalid request parameters.
"""

from typing import Any, Optional


class AnalyticsError(Exception):
    """Base exception for all analytics errors."""

    def __init__(self, message: str, *, context: Optional[dict[str, Any]] = None) -> None:
        self.message = message
        self.context = context or {}
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, context={self.context!r})"


class RepositoryError(AnalyticsError):
    """Raised when the record repository cannot supply records."""


class InvalidRangeError(AnalyticsError, ValueError):
    """Raised when a date range or comparison request cannot be resolved."""
