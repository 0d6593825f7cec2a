"""
Base repository borrowing the shared DuckDB store.

All domain repositories inherit from this class.
"""
from typing import Iterable, Sequence

from core.duckdb_store import DuckDBStore
from core.observability import get_logger

logger = get_logger(__name__)


def upsert_sql(table: str, key_columns: Sequence[str], columns: Iterable[str]) -> str:
    """
    Build an ``INSERT ... ON CONFLICT DO UPDATE`` statement.

    Every non-key column is overwritten from the incoming row, so an upsert
    fully replaces the stored entity. Key columns are never updated.
    """
    columns = list(columns)
    placeholders = ", ".join("?" for _ in columns)
    updates = ",\n            ".join(
        f"{column} = excluded.{column}"
        for column in columns
        if column not in key_columns
    )
    return f"""
        INSERT INTO {table} ({", ".join(columns)})
        VALUES ({placeholders})
        ON CONFLICT ({", ".join(key_columns)}) DO UPDATE SET
            {updates}
    """


class BaseRepository:
    """
    Base repository over a DuckDBStore.

    Usage:
        class OrdersRepository(BaseRepository):
            async def count(self, store_id: str) -> int:
                return await self.store.fetch_value(
                    "SELECT COUNT(*) FROM orders WHERE store_id = ?", [store_id]
                )
    """

    def __init__(self, store: DuckDBStore):
        self.store = store
