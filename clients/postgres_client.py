"""
PostgreSQL client with connection pooling and explicit transactions.

Uses psycopg2 with ThreadedConnectionPool. Single statements are committed
immediately. Multi-statement work (an invoice status
change plus the shipment update plus the timeline entries) goes through
transaction(), which pins one connection and commits once at the end or
rolls everything back.

Company isolation is enforced in the queries themselves: every table carries
company_id (directly or through its shipment) and callers always filter on it.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Tuple
from uuid import UUID

import psycopg2
import psycopg2.errors
import psycopg2.extras
import psycopg2.pool

from core.exceptions import DuplicateInvoiceNumberError, TransactionError

logger = logging.getLogger(__name__)

# Global JSONB registration flag
_jsonb_registered = False

# Name of the unique constraint on (company_id, invoice_number)
INVOICE_NUMBER_CONSTRAINT = "invoices_company_id_invoice_number_key"


def contains_pattern(text: str) -> str:
    """ILIKE pattern matching `text` literally anywhere. Use with ESCAPE '\\'."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _convert_params(params: Tuple | Dict | None) -> Tuple | Dict | None:
    """Convert UUID objects to strings."""
    if params is None:
        return None

    def convert(value: Any) -> Any:
        if isinstance(value, UUID):
            return str(value)
        if isinstance(value, list):
            return [convert(v) for v in value]
        if isinstance(value, tuple):
            return tuple(convert(v) for v in value)
        if isinstance(value, dict):
            return {k: convert(v) for k, v in value.items()}
        return value

    return convert(params)


class PostgresTransaction:
    """
    Query surface bound to a single open connection.

    Nothing is committed until the owning PostgresClient.transaction() block
    exits cleanly. Exposes the same execute* methods as PostgresClient so
    data-access code works against either.
    """

    def __init__(self, conn):
        self._conn = conn

    def execute(self, query: str, params: Tuple | Dict | None = None) -> List[Dict[str, Any]]:
        """Execute query, return list of row dicts. Empty list if no results."""
        with self._conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
            cur.execute(query, _convert_params(params))
            if cur.description:
                return [dict(row) for row in cur.fetchall()]
            return []

    def execute_single(self, query: str, params: Tuple | Dict | None = None) -> Dict[str, Any] | None:
        """Execute query, return first row or None."""
        results = self.execute(query, params)
        return results[0] if results else None

    def execute_scalar(self, query: str, params: Tuple | Dict | None = None) -> Any:
        """Execute query, return first value of first row or None."""
        with self._conn.cursor() as cur:
            cur.execute(query, _convert_params(params))
            result = cur.fetchone()
            return result[0] if result else None

    def execute_returning(self, query: str, params: Tuple | Dict | None = None) -> List[Dict[str, Any]]:
        """Execute INSERT/UPDATE with RETURNING, return results."""
        return self.execute(query, params)


class PostgresClient:
    """
    PostgreSQL client with pooled connections.

    Usage:
        db = PostgresClient(database_url)

        # Autocommitted single statement
        rows = db.execute("SELECT * FROM invoices WHERE company_id = %s", (company_id,))

        # Several writes that must land together
        with db.transaction() as tx:
            tx.execute("UPDATE invoices SET status = %s WHERE id = %s", ("ISSUED", invoice_id))
            tx.execute("UPDATE shipments SET status = %s WHERE id = %s", ("INVOICED", shipment_id))
    """

    # Class-level connection pools shared across instances
    _connection_pools: Dict[str, psycopg2.pool.ThreadedConnectionPool] = {}
    _pools_lock = threading.RLock()

    def __init__(self, database_url: str):
        self._database_url = database_url
        self._ensure_connection_pool()

    def _ensure_connection_pool(self) -> None:
        """Create connection pool if it doesn't exist."""
        with self._pools_lock:
            if self._database_url not in self._connection_pools:
                pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=2,
                    maxconn=20,
                    dsn=self._database_url,
                    connect_timeout=30,
                )

                global _jsonb_registered
                if not _jsonb_registered:
                    psycopg2.extras.register_default_jsonb(globally=True)
                    _jsonb_registered = True

                self._connection_pools[self._database_url] = pool
                logger.info("Connection pool created")

    @contextmanager
    def get_connection(self):
        """Borrow a pooled connection for the duration of the block."""
        if self._database_url not in self._connection_pools:
            self._ensure_connection_pool()

        pool = self._connection_pools[self._database_url]
        conn = None

        try:
            conn = pool.getconn()
            if conn is None:
                raise RuntimeError("Could not get connection from pool")
            yield conn

        finally:
            if conn:
                pool.putconn(conn)

    @contextmanager
    def transaction(self) -> Iterator[PostgresTransaction]:
        """
        Run several statements atomically.

        Commits when the block exits normally. Any exception rolls back every
        statement issued in the block; database errors are re-raised as
        TransactionError (DuplicateInvoiceNumberError for invoice number
        collisions) and everything else propagates unchanged.
        """
        with self.get_connection() as conn:
            try:
                yield PostgresTransaction(conn)
                conn.commit()
            except psycopg2.errors.UniqueViolation as e:
                conn.rollback()
                constraint = getattr(getattr(e, "diag", None), "constraint_name", None)
                if constraint == INVOICE_NUMBER_CONSTRAINT:
                    raise DuplicateInvoiceNumberError("Invoice number already taken") from e
                raise TransactionError(f"Transaction rolled back: {e}") from e
            except psycopg2.Error as e:
                conn.rollback()
                logger.error("Transaction rolled back: %s", e)
                raise TransactionError(f"Transaction rolled back: {e}") from e
            except BaseException:
                conn.rollback()
                raise

    # Single statements: each runs in its own one-statement transaction

    def execute(self, query: str, params: Tuple | Dict | None = None) -> List[Dict[str, Any]]:
        with self.transaction() as tx:
            return tx.execute(query, params)

    def execute_single(self, query: str, params: Tuple | Dict | None = None) -> Dict[str, Any] | None:
        with self.transaction() as tx:
            return tx.execute_single(query, params)

    def execute_scalar(self, query: str, params: Tuple | Dict | None = None) -> Any:
        with self.transaction() as tx:
            return tx.execute_scalar(query, params)

    def execute_returning(self, query: str, params: Tuple | Dict | None = None) -> List[Dict[str, Any]]:
        with self.transaction() as tx:
            return tx.execute_returning(query, params)

    def close(self) -> None:
        """Close connection pool."""
        with self._pools_lock:
            if self._database_url in self._connection_pools:
                self._connection_pools[self._database_url].closeall()
                del self._connection_pools[self._database_url]

