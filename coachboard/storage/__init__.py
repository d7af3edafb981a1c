"""
Record storage layer.

The analytics engine reads memberships, purchases and clients through the
``RecordRepository`` interface. DuckDB backs the service; the in-memory
repository serves embedding and tests.
"""

from functools import lru_cache

from coachboard.config import get_settings

from .base import RecordRepository, decode_records
from .duckdb_storage import DuckDBRepository
from .memory_storage import InMemoryRepository


@lru_cache
def get_repository() -> RecordRepository:
    """
    Get cached repository instance (singleton).

    Returns:
        RecordRepository implementation instance
    """
    settings = get_settings()
    return DuckDBRepository(db_path=settings.db_path)


__all__ = [
    "RecordRepository",
    "DuckDBRepository",
    "InMemoryRepository",
    "decode_records",
    "get_repository",
]
