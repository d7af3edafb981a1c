"""
Abstract record repository for the analytics engine.

The engine consumes a fully materialised snapshot of memberships, purchases and
clients for each pass. How those records are fetched (DuckDB file, hosted
Postgres, a cache fed by realtime subscriptions) is the repository's concern.
Implementations return records already decoded into the models in
``coachboard.models.records``, most recent first.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Type, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from coachboard.models.records import ClientRecord, MembershipRecord, PurchaseRecord

logger = structlog.get_logger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


def decode_records(model: Type[RecordT], rows: Iterable[dict]) -> list[RecordT]:
    """
    Decode raw rows into record models, skipping rows that fail validation.

    A single malformed row (unparseable date, unknown tier) degrades the
    precision of one pass; it never aborts it.

    Args:
        model: Record model class to decode into
        rows: Raw column->value mappings

    Returns:
        Successfully decoded records, in input order
    """
    records: list[RecordT] = []
    skipped = 0
    for row in rows:
        try:
            records.append(model.model_validate(row))
        except ValidationError as e:
            skipped += 1
            logger.warning(
                "record_skipped",
                record_type=model.__name__,
                record_id=row.get("id") if isinstance(row, dict) else None,
                errors=e.error_count(),
            )
    if skipped:
        logger.info(
            "records_decoded",
            record_type=model.__name__,
            decoded=len(records),
            skipped=skipped,
        )
    return records


class RecordRepository(ABC):
    """
    Read-only source of the three record streams the engine analyses.

    Implementations should:
    - Return complete record sets (the engine never pages)
    - Order memberships and clients by creation, purchases by ``purchased_at``,
      most recent first
    - Raise ``RepositoryError`` when the backing store is unreachable
    """

    @abstractmethod
    def list_memberships(self) -> list[MembershipRecord]:
        """
        Return every membership record.

        Raises:
            RepositoryError: If the store cannot be read
        """
        pass

    @abstractmethod
    def list_purchases(self) -> list[PurchaseRecord]:
        """
        Return every purchase record, most recent first.

        Raises:
            RepositoryError: If the store cannot be read
        """
        pass

    @abstractmethod
    def list_clients(self) -> list[ClientRecord]:
        """
        Return every client record, most recently created first.

        Raises:
            RepositoryError: If the store cannot be read
        """
        pass
