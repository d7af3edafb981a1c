"""In-memory record repository, for embedding and for tests."""

from typing import Iterable, Optional

from coachboard.models.records import ClientRecord, MembershipRecord, PurchaseRecord

from .base import RecordRepository


class InMemoryRepository(RecordRepository):
    """
    Holds already-decoded records in lists.

    Used when records arrive from somewhere other than the DuckDB file (an
    upstream API client, a realtime cache) and by unit tests.
    """

    def __init__(
        self,
        memberships: Optional[Iterable[MembershipRecord]] = None,
        purchases: Optional[Iterable[PurchaseRecord]] = None,
        clients: Optional[Iterable[ClientRecord]] = None,
    ):
        self._memberships = list(memberships or [])
        self._purchases = list(purchases or [])
        self._clients = list(clients or [])

    def list_memberships(self) -> list[MembershipRecord]:
        return sorted(self._memberships, key=lambda m: (m.start_date, m.id), reverse=True)

    def list_purchases(self) -> list[PurchaseRecord]:
        return sorted(self._purchases, key=lambda p: (p.purchased_at, p.id), reverse=True)

    def list_clients(self) -> list[ClientRecord]:
        return sorted(self._clients, key=lambda c: (c.created_at, c.id), reverse=True)

    def replace(
        self,
        memberships: Optional[Iterable[MembershipRecord]] = None,
        purchases: Optional[Iterable[PurchaseRecord]] = None,
        clients: Optional[Iterable[ClientRecord]] = None,
    ) -> None:
        """Swap in a refreshed snapshot; streams passed as None are kept."""
        if memberships is not None:
            self._memberships = list(memberships)
        if purchases is not None:
            self._purchases = list(purchases)
        if clients is not None:
            self._clients = list(clients)
