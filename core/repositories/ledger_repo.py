"""
Ledger repository for the sync_logs table.

Rows are append-only; ``resolved_at`` is the only column written after insert.
Every query is scoped by store_id.
"""
from datetime import datetime
from typing import List, Optional

import orjson

from core.models import SyncAttempt, SyncStatus
from core.repositories.base import BaseRepository
from core.observability import get_logger

logger = get_logger(__name__)

LEDGER_COLUMNS = (
    "id", "store_id", "sync_type", "resource", "status", "records_synced",
    "error_message", "retry_count", "retry_of", "root_id", "payload",
    "next_retry_at", "resolved_at", "started_at", "completed_at",
)


class LedgerRepository(BaseRepository):
    """Repository for sync attempt rows."""

    async def insert(self, attempt: SyncAttempt) -> None:
        """Append one attempt row."""
        payload = orjson.dumps(attempt.payload).decode() if attempt.payload is not None else None
        values = {
            **{column: getattr(attempt, column) for column in LEDGER_COLUMNS},
            "payload": payload,
            "root_id": attempt.root_id or attempt.id,
        }
        await self.store.execute(
            f"INSERT INTO sync_logs ({', '.join(LEDGER_COLUMNS)}) "
            f"VALUES ({', '.join('?' for _ in LEDGER_COLUMNS)})",
            [values[column] for column in LEDGER_COLUMNS],
        )

    async def get(self, store_id: str, sync_log_id: str) -> Optional[SyncAttempt]:
        """Tenant-scoped lookup; rows of other stores are invisible."""
        row = await self.store.fetch_one(
            "SELECT * FROM sync_logs WHERE id = ? AND store_id = ?",
            [sync_log_id, store_id],
        )
        return SyncAttempt.from_row(row) if row else None

    async def list_recent(self, store_id: str, limit: int) -> List[SyncAttempt]:
        """Most recent attempts of a store, newest first."""
        rows = await self.store.fetch_all(
            """
            SELECT * FROM sync_logs
            WHERE store_id = ?
            ORDER BY started_at DESC, completed_at DESC
            LIMIT ?
            """,
            [store_id, limit],
        )
        return [SyncAttempt.from_row(row) for row in rows]

    async def list_unresolved_failures(self, store_id: str, limit: int) -> List[SyncAttempt]:
        """
        Failed attempts whose chain has not been resolved, newest first.

        Each attempt carries its chain's highest retry_count and latest
        next_retry_at, since retries are capped and scheduled per chain.
        """
        rows = await self.store.fetch_all(
            """
            SELECT l.*, c.chain_retry_count, c.chain_next_retry_at
            FROM sync_logs l
            JOIN (
                SELECT root_id,
                       MAX(retry_count) AS chain_retry_count,
                       MAX(next_retry_at) AS chain_next_retry_at
                FROM sync_logs
                WHERE store_id = ?
                GROUP BY root_id
            ) c ON c.root_id = l.root_id
            WHERE l.store_id = ? AND l.status = ? AND l.resolved_at IS NULL
            ORDER BY l.started_at DESC, l.completed_at DESC
            LIMIT ?
            """,
            [store_id, store_id, SyncStatus.FAILED.value, limit],
        )
        return [SyncAttempt.from_row(row) for row in rows]

    async def count_unresolved_failures(self, store_id: str) -> int:
        return await self.store.fetch_value(
            """
            SELECT COUNT(*) FROM sync_logs
            WHERE store_id = ? AND status = ? AND resolved_at IS NULL
            """,
            [store_id, SyncStatus.FAILED.value],
        ) or 0

    async def last_success_at(self, store_id: str) -> Optional[datetime]:
        """Completion time of the newest successful attempt."""
        return await self.store.fetch_value(
            "SELECT MAX(completed_at) FROM sync_logs WHERE store_id = ? AND status = ?",
            [store_id, SyncStatus.SUCCEEDED.value],
        )

    async def resolve_chain(self, store_id: str, root_id: str, resolved_at: datetime) -> int:
        """
        Mark every unresolved failed row of a retry chain as resolved.

        Returns:
            Number of rows resolved
        """
        def _write(conn) -> int:
            row = conn.execute(
                """
                SELECT COUNT(*) FROM sync_logs
                WHERE store_id = ? AND root_id = ? AND status = ? AND resolved_at IS NULL
                """,
                [store_id, root_id, SyncStatus.FAILED.value],
            ).fetchone()
            conn.execute(
                """
                UPDATE sync_logs SET resolved_at = ?
                WHERE store_id = ? AND root_id = ? AND status = ? AND resolved_at IS NULL
                """,
                [resolved_at, store_id, root_id, SyncStatus.FAILED.value],
            )
            return row[0]

        resolved = await self.store.transaction(_write)
        logger.info(
            f"Resolved {resolved} failed attempts",
            extra={"store_id": store_id, "root_id": root_id},
        )
        return resolved

    async def chain_retry_count(self, store_id: str, root_id: str) -> int:
        """Highest retry_count recorded in a retry chain."""
        return await self.store.fetch_value(
            "SELECT MAX(retry_count) FROM sync_logs WHERE store_id = ? AND root_id = ?",
            [store_id, root_id],
        ) or 0
