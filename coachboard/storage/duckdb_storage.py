"""
DuckDB record repository.

Reads the membership, purchase and client tables of a local DuckDB file. The
console's hosted backend syncs into this file; the analytics engine only ever
reads it. ``write_*`` helpers exist for seeding and tests.

Key features:
- Thread-local connections
- Idempotent schema creation
- Row decoding through the record models (malformed rows are skipped)
"""

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable

import duckdb
import structlog

from coachboard.config import get_settings
from coachboard.exceptions import RepositoryError
from coachboard.models.records import ClientRecord, MembershipRecord, PurchaseRecord

from .base import RecordRepository, decode_records

logger = structlog.get_logger(__name__)

_TABLES = ("memberships", "purchases", "clients")


class DuckDBRepository(RecordRepository):
    """
    DuckDB implementation of the record repository.

    Attributes:
        db_path: Path to the DuckDB database file
        _local: Thread-local storage for per-thread connections
        _lock: Thread lock for schema operations
        _initialized: Flag tracking whether schema is initialized
    """

    def __init__(self, db_path: str = "./data/coachboard.duckdb"):
        """
        Initialize the DuckDB repository.

        Args:
            db_path: Path to DuckDB database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._local = threading.local()
        self._lock = threading.Lock()
        self._initialized = False

        logger.info("duckdb_repository_initialized", db_path=str(self.db_path))

        self._initialize_schema()

    @contextmanager
    def _get_connection(self):
        """
        Get a thread-local DuckDB connection.

        Yields:
            DuckDB connection instance

        Raises:
            RepositoryError: If connection cannot be established
        """
        if not hasattr(self._local, "connection"):
            try:
                self._local.connection = duckdb.connect(str(self.db_path))
                logger.debug("duckdb_connection_created", thread_id=threading.get_ident())
            except duckdb.Error as e:
                logger.error("duckdb_connection_failed", error=str(e))
                raise RepositoryError(f"Failed to connect to DuckDB: {e}") from e

        yield self._local.connection

    def _initialize_schema(self) -> None:
        """
        Create the record tables. Idempotent.

        Raises:
            RepositoryError: If schema creation fails
        """
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return

            try:
                with self._get_connection() as conn:
                    conn.execute("""
                        CREATE TABLE IF NOT EXISTS memberships (
                            id VARCHAR PRIMARY KEY,
                            client_id VARCHAR NOT NULL,
                            tier VARCHAR NOT NULL,
                            program_type VARCHAR,
                            status VARCHAR NOT NULL,
                            monthly_price DOUBLE,
                            start_date DATE NOT NULL,
                            end_date DATE,
                            renewal_date DATE
                        )
                    """)

                    conn.execute("""
                        CREATE TABLE IF NOT EXISTS purchases (
                            id VARCHAR PRIMARY KEY,
                            client_id VARCHAR NOT NULL,
                            purchase_type VARCHAR NOT NULL,
                            amount DOUBLE NOT NULL,
                            purchased_at TIMESTAMP NOT NULL,
                            product_name VARCHAR
                        )
                    """)

                    conn.execute("""
                        CREATE INDEX IF NOT EXISTS idx_purchases_purchased_at
                        ON purchases(purchased_at)
                    """)

                    conn.execute("""
                        CREATE TABLE IF NOT EXISTS clients (
                            id VARCHAR PRIMARY KEY,
                            full_name VARCHAR NOT NULL,
                            email VARCHAR NOT NULL,
                            created_at TIMESTAMP NOT NULL,
                            marketing_status VARCHAR
                        )
                    """)

                self._initialized = True
                logger.info("duckdb_schema_initialized", tables=list(_TABLES))

            except duckdb.Error as e:
                logger.error("duckdb_schema_initialization_failed", error=str(e))
                raise RepositoryError(f"Failed to initialize schema: {e}") from e

    def _fetch_rows(self, table: str, order_by: str) -> list[dict]:
        query = f"SELECT * FROM {table} ORDER BY {order_by}"
        try:
            with self._get_connection() as conn:
                cursor = conn.execute(query)
                columns = [d[0] for d in cursor.description]
                return [dict(zip(columns, row)) for row in cursor.fetchall()]
        except duckdb.Error as e:
            logger.error("duckdb_read_failed", table=table, error=str(e))
            raise RepositoryError(f"Failed to read {table}: {e}") from e

    # =========================================================================
    # Reads
    # =========================================================================

    def list_memberships(self) -> list[MembershipRecord]:
        rows = self._fetch_rows("memberships", "start_date DESC, id DESC")
        return decode_records(MembershipRecord, rows)

    def list_purchases(self) -> list[PurchaseRecord]:
        rows = self._fetch_rows("purchases", "purchased_at DESC, id DESC")
        return decode_records(PurchaseRecord, rows)

    def list_clients(self) -> list[ClientRecord]:
        rows = self._fetch_rows("clients", "created_at DESC, id DESC")
        return decode_records(ClientRecord, rows)

    # =========================================================================
    # Seeding
    # =========================================================================

    def _write_rows(self, table: str, columns: list[str], rows: list[list]) -> int:
        if not rows:
            return 0
        placeholders = ", ".join("?" for _ in columns)
        query = (
            f"INSERT OR REPLACE INTO {table} ({', '.join(columns)}) "
            f"VALUES ({placeholders})"
        )
        try:
            with self._get_connection() as conn:
                conn.begin()
                try:
                    conn.executemany(query, rows)
                    conn.commit()
                except duckdb.Error:
                    conn.rollback()
                    raise
        except duckdb.Error as e:
            logger.error("duckdb_write_failed", table=table, error=str(e))
            raise RepositoryError(f"Failed to write {table}: {e}") from e

        logger.info("records_written", table=table, count=len(rows))
        return len(rows)

    def write_memberships(self, memberships: Iterable[MembershipRecord]) -> int:
        rows = [
            [
                m.id,
                m.client_id,
                m.tier.value,
                m.program_type.value if m.program_type else None,
                m.status.value,
                m.monthly_price,
                m.start_date,
                m.end_date,
                m.renewal_date,
            ]
            for m in memberships
        ]
        return self._write_rows(
            "memberships",
            [
                "id", "client_id", "tier", "program_type", "status",
                "monthly_price", "start_date", "end_date", "renewal_date",
            ],
            rows,
        )

    def write_purchases(self, purchases: Iterable[PurchaseRecord]) -> int:
        rows = [
            [p.id, p.client_id, p.purchase_type.value, p.amount, p.purchased_at, p.product_name]
            for p in purchases
        ]
        return self._write_rows(
            "purchases",
            ["id", "client_id", "purchase_type", "amount", "purchased_at", "product_name"],
            rows,
        )

    def write_clients(self, clients: Iterable[ClientRecord]) -> int:
        rows = [
            [
                c.id,
                c.full_name,
                c.email,
                c.created_at,
                c.marketing_status.value if c.marketing_status else None,
            ]
            for c in clients
        ]
        return self._write_rows(
            "clients",
            ["id", "full_name", "email", "created_at", "marketing_status"],
            rows,
        )

    def write_raw(self, table: str, row: dict) -> None:
        """Insert one unvalidated row. Used to simulate legacy/malformed rows."""
        if table not in _TABLES:
            raise ValueError(f"Unknown table {table}")
        columns = list(row.keys())
        self._write_rows(table, columns, [[row[c] for c in columns]])

    def clear_for_testing(self) -> None:
        """
        Truncate all tables. No-op unless the testing setting is on.
        """
        if not get_settings().testing:
            return
        with self._get_connection() as conn:
            for table in _TABLES:
                conn.execute(f"DELETE FROM {table}")
        logger.info("duckdb_tables_cleared", tables=list(_TABLES))
