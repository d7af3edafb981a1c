"""
Latest-result-wins gate for overlapping recomputations.

A burst of change notifications can start several dashboard passes before the
first one finishes. Each pass takes a ticket when it starts; when it finishes
it may publish only if no pass with a newer ticket has published already.
"""

import threading
from typing import Generic, Optional, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


class LatestResultGate(Generic[T]):
    """Hands out monotonically increasing tickets and keeps the newest result."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._issued = 0
        self._published_ticket = 0
        self._latest: Optional[T] = None

    def begin(self) -> int:
        with self._lock:
            self._issued += 1
            return self._issued

    def publish(self, ticket: int, result: T) -> bool:
        """
        Publish ``result`` computed under ``ticket``.

        Returns:
            True if the result became the latest, False if it was stale
        """
        with self._lock:
            if ticket <= self._published_ticket:
                logger.info(
                    "stale_result_discarded",
                    ticket=ticket,
                    published_ticket=self._published_ticket,
                )
                return False
            self._published_ticket = ticket
            self._latest = result
            return True

    @property
    def latest(self) -> Optional[T]:
        with self._lock:
            return self._latest

    @property
    def published_ticket(self) -> int:
        with self._lock:
            return self._published_ticket
