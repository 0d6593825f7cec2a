"""
DuckDB store for synced tenant data and the sync ledger.

Owns the single DuckDB connection. DuckDB connections are not thread-safe,
so every statement runs under one asyncio lock on a single-worker thread
pool; blocking database work never runs on the event loop.

Domain queries live in repositories (core.repositories) that borrow this
store rather than opening their own connections.
"""
import asyncio
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar

import duckdb

from core.config import config
from core.exceptions import QueryTimeoutError
from core.observability import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

SCHEMA_SQL = """
-- Tenants (written by the store-connect service)
CREATE TABLE IF NOT EXISTS stores (
    id VARCHAR PRIMARY KEY,
    store_url VARCHAR NOT NULL UNIQUE,
    api_key_hash VARCHAR NOT NULL,
    plan VARCHAR DEFAULT 'free',
    connected_at TIMESTAMP,
    last_sync_at TIMESTAMP,
    is_active BOOLEAN DEFAULT TRUE
);

-- Orders, keyed by the platform's order id within a store
CREATE TABLE IF NOT EXISTS orders (
    store_id VARCHAR NOT NULL,
    wc_order_id BIGINT NOT NULL,
    date_created TIMESTAMP NOT NULL,
    date_modified TIMESTAMP,
    status VARCHAR NOT NULL,
    total DECIMAL(12, 2) NOT NULL,
    subtotal DECIMAL(12, 2),
    tax_total DECIMAL(12, 2),
    shipping_total DECIMAL(12, 2),
    discount_total DECIMAL(12, 2),
    currency VARCHAR DEFAULT 'USD',
    customer_wc_id BIGINT,
    payment_method VARCHAR,
    coupon_used VARCHAR,
    synced_at TIMESTAMP,
    PRIMARY KEY (store_id, wc_order_id)
);

-- Order line items, replaced wholesale on every order upsert
CREATE TABLE IF NOT EXISTS order_items (
    store_id VARCHAR NOT NULL,
    wc_order_id BIGINT NOT NULL,
    wc_product_id BIGINT,
    product_name VARCHAR NOT NULL,
    sku VARCHAR,
    quantity INTEGER NOT NULL CHECK (quantity >= 1),
    subtotal DECIMAL(12, 2),
    total DECIMAL(12, 2)
);

CREATE TABLE IF NOT EXISTS products (
    store_id VARCHAR NOT NULL,
    wc_product_id BIGINT NOT NULL,
    name VARCHAR NOT NULL,
    sku VARCHAR,
    price DECIMAL(12, 2),
    regular_price DECIMAL(12, 2),
    sale_price DECIMAL(12, 2),
    category_wc_id BIGINT,
    category_name VARCHAR,
    stock_quantity INTEGER,
    stock_status VARCHAR,
    status VARCHAR DEFAULT 'publish',
    type VARCHAR DEFAULT 'simple',
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
    synced_at TIMESTAMP,
    PRIMARY KEY (store_id, wc_product_id)
);

CREATE TABLE IF NOT EXISTS customers (
    store_id VARCHAR NOT NULL,
    wc_customer_id BIGINT NOT NULL,
    email_hash VARCHAR,
    display_name VARCHAR,
    total_spent DECIMAL(12, 2) DEFAULT 0,
    order_count INTEGER DEFAULT 0,
    first_order_date TIMESTAMP,
    last_order_date TIMESTAMP,
    created_at TIMESTAMP,
    synced_at TIMESTAMP,
    PRIMARY KEY (store_id, wc_customer_id)
);

CREATE TABLE IF NOT EXISTS categories (
    store_id VARCHAR NOT NULL,
    wc_category_id BIGINT NOT NULL,
    name VARCHAR NOT NULL,
    parent_wc_id BIGINT,
    product_count INTEGER DEFAULT 0,
    synced_at TIMESTAMP,
    PRIMARY KEY (store_id, wc_category_id)
);

-- Sync ledger: append-only, resolved_at is the only column updated later
CREATE TABLE IF NOT EXISTS sync_logs (
    id VARCHAR PRIMARY KEY,
    store_id VARCHAR NOT NULL,
    sync_type VARCHAR NOT NULL,
    resource VARCHAR NOT NULL,
    status VARCHAR NOT NULL,
    records_synced INTEGER DEFAULT 0,
    error_message VARCHAR,
    retry_count INTEGER DEFAULT 0,
    retry_of VARCHAR,
    root_id VARCHAR NOT NULL,
    payload VARCHAR,
    next_retry_at TIMESTAMP,
    resolved_at TIMESTAMP,
    started_at TIMESTAMP NOT NULL,
    completed_at TIMESTAMP
);
"""


def init_schema(conn: duckdb.DuckDBPyConnection) -> None:
    """Create tables on a raw connection if they do not exist."""
    conn.execute(SCHEMA_SQL)


def rows_as_dicts(cursor: duckdb.DuckDBPyConnection) -> List[Dict[str, Any]]:
    """Fetch remaining rows of an executed statement keyed by column name."""
    columns = [desc[0] for desc in cursor.description]
    return [dict(zip(columns, row)) for row in cursor.fetchall()]


class DuckDBStore:
    """
    Async-compatible DuckDB store.

    Features:
    - Persistent storage (survives restarts)
    - Serialized access through one lock and one worker thread
    - Explicit transactions for multi-statement writes
    - Timeouts on read queries
    """

    def __init__(self, db_path: Optional[Path] = None, query_timeout: Optional[float] = None):
        self.db_path = Path(db_path or config.database.path)
        self.query_timeout = query_timeout or config.database.query_timeout
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = asyncio.Lock()  # Serializes all database access

        # Thread pool for offloading blocking DB operations
        self._executor: Optional[ThreadPoolExecutor] = None

        # Stats for monitoring
        self._total_queries = 0

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    async def connect(self) -> None:
        """Initialize database connection, schema, and thread pool."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        async with self._lock:
            if self._connection is None:
                self._connection = duckdb.connect(str(self.db_path))
                init_schema(self._connection)

                self._executor = ThreadPoolExecutor(
                    max_workers=1,  # Single worker - DuckDB requires serialized access
                    thread_name_prefix="duckdb"
                )

                logger.info(f"DuckDB connected: {self.db_path}")

    async def close(self) -> None:
        """Close database connection and thread pool."""
        async with self._lock:
            # Waits for in-flight statements to finish
            if self._executor:
                self._executor.shutdown(wait=True)
                self._executor = None

            if self._connection:
                self._connection.close()
                self._connection = None
                logger.info("DuckDB connection closed")

    def get_connection_info(self) -> Dict[str, Any]:
        """Get connection info for monitoring."""
        return {
            "status": "active" if self._connection else "not_initialized",
            "total_queries": self._total_queries,
            "db_path": str(self.db_path),
        }

    @asynccontextmanager
    async def connection(self):
        """
        Get the database connection under the store lock.

        Connects lazily on first use.
        """
        if self._connection is None:
            await self.connect()
        async with self._lock:
            yield self._connection

    # ─── Query Execution ─────────────────────────────────────────────────────

    async def _run(self, work: Callable[[duckdb.DuckDBPyConnection], T]) -> T:
        async with self.connection() as conn:
            self._total_queries += 1
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(self._executor, work, conn)

    async def _run_with_timeout(
        self,
        query: str,
        work: Callable[[duckdb.DuckDBPyConnection], T],
        timeout: Optional[float],
        context: str,
    ) -> T:
        timeout = timeout or self.query_timeout
        try:
            return await asyncio.wait_for(self._run(work), timeout=timeout)
        except asyncio.TimeoutError:
            raise QueryTimeoutError(query, timeout, context)

    async def fetch_one(
        self,
        query: str,
        params: list = None,
        timeout: float = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Execute query and fetch one row as a dict, with timeout.

        Raises:
            QueryTimeoutError: If query exceeds timeout
        """
        def _work(conn):
            rows = rows_as_dicts(conn.execute(query, params or []))
            return rows[0] if rows else None

        return await self._run_with_timeout(query, _work, timeout, "Fetch one failed")

    async def fetch_all(
        self,
        query: str,
        params: list = None,
        timeout: float = None,
    ) -> List[Dict[str, Any]]:
        """
        Execute query and fetch all rows as dicts, with timeout.

        Raises:
            QueryTimeoutError: If query exceeds timeout
        """
        def _work(conn):
            return rows_as_dicts(conn.execute(query, params or []))

        return await self._run_with_timeout(query, _work, timeout, "Fetch all failed")

    async def fetch_value(
        self,
        query: str,
        params: list = None,
        timeout: float = None,
    ) -> Any:
        """Execute query and return the first column of the first row."""
        def _work(conn):
            row = conn.execute(query, params or []).fetchone()
            return row[0] if row else None

        return await self._run_with_timeout(query, _work, timeout, "Fetch value failed")

    async def execute(self, query: str, params: list = None) -> None:
        """Execute a single write statement."""
        await self._run(lambda conn: conn.execute(query, params or []))

    async def transaction(self, work: Callable[[duckdb.DuckDBPyConnection], T]) -> T:
        """
        Run ``work(conn)`` inside one transaction.

        Commits when ``work`` returns and rolls back when it raises; the
        exception propagates. Writes are not subject to the query timeout:
        once started, a transaction runs to commit or rollback.
        """
        def _work(conn):
            conn.begin()
            try:
                result = work(conn)
            except Exception:
                conn.rollback()
                raise
            conn.commit()
            return result

        return await self._run(_work)

    async def ping(self) -> bool:
        """Check that the database answers a trivial query."""
        return await self.fetch_value("SELECT 1", timeout=5) == 1
