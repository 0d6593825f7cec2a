"""
Sync ledger: provenance log of every ingest attempt.

Each accepted ingest call appends exactly one row, written synchronously
after the upsert finishes. Ledger writes are best-effort: they are retried
briefly, then logged and dropped, and never change the caller's outcome.

The ledger also serves the read side: per-store sync status and the list of
failed attempts that can still be retried.
"""
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from core.config import SyncConfig, config
from core.exceptions import Failure
from core.models import (
    Resource,
    StoreSyncStatus,
    SyncAttempt,
    SyncStatus,
    utc_now,
)
from core.observability import get_logger, metrics
from core.repositories import EntitiesRepository, LedgerRepository
from core.resilience import RetryConfig, compute_backoff, retry_with_backoff

logger = get_logger(__name__)


class SyncLedger:
    """Append-only sync attempt log with status and failure views."""

    def __init__(
        self,
        ledger: LedgerRepository,
        entities: EntitiesRepository,
        sync_config: Optional[SyncConfig] = None,
    ):
        self.ledger = ledger
        self.entities = entities
        self.config = sync_config or config.sync
        self._write_retry = RetryConfig(
            max_attempts=self.config.ledger_write_attempts,
            base_delay=self.config.ledger_write_delay,
            max_delay=1.0,
        )

    def backoff_seconds(self, retry_count: int) -> float:
        """Advisory wait before retrying an attempt that has been retried ``retry_count`` times."""
        return compute_backoff(
            retry_count,
            self.config.base_backoff_seconds,
            self.config.max_backoff_seconds,
        )

    async def record_attempt(
        self,
        store_id: str,
        sync_type: str,
        resource: Resource,
        *,
        started_at: datetime,
        upserted: int = 0,
        failure: Optional[Failure] = None,
        payload: Optional[Sequence[Dict[str, Any]]] = None,
        retry_of: Optional[SyncAttempt] = None,
    ) -> Optional[SyncAttempt]:
        """
        Append one attempt row.

        Args:
            started_at: When the ingest call started (naive UTC)
            upserted: Entities written; ignored for failures
            failure: Set when the attempt failed
            payload: Normalized batch, kept on failed rows for retry
            retry_of: The failed row this attempt retries

        Returns:
            The recorded attempt, or None when the write was dropped
        """
        completed_at = utc_now()
        attempt_id = str(uuid.uuid4())
        retry_count = retry_of.retry_count + 1 if retry_of else 0

        attempt = SyncAttempt(
            id=attempt_id,
            store_id=store_id,
            sync_type=sync_type,
            resource=resource.value,
            status=SyncStatus.FAILED.value if failure else SyncStatus.SUCCEEDED.value,
            records_synced=0 if failure else upserted,
            error_message=failure.description if failure else None,
            retry_count=retry_count,
            retry_of=retry_of.id if retry_of else None,
            root_id=retry_of.root_id if retry_of else attempt_id,
            payload=list(payload) if failure and payload is not None else None,
            next_retry_at=(
                completed_at + timedelta(seconds=self.backoff_seconds(retry_count))
                if failure else None
            ),
            started_at=started_at,
            completed_at=completed_at,
        )

        try:
            await retry_with_backoff(self.ledger.insert, attempt, config=self._write_retry)
        except Exception as e:
            logger.error(
                f"Dropped ledger row for {sync_type}: {e}",
                exc_info=True,
                extra={"store_id": store_id, "status": attempt.status},
            )
            metrics.record_error("ledger_write")
            return None

        return attempt

    async def resolve_chain(self, store_id: str, attempt: SyncAttempt) -> int:
        """
        Mark the failed rows of an attempt's retry chain as resolved.

        Best-effort like every ledger write; returns 0 when dropped.
        """
        try:
            return await retry_with_backoff(
                self.ledger.resolve_chain,
                store_id,
                attempt.root_id,
                utc_now(),
                config=self._write_retry,
            )
        except Exception as e:
            logger.error(
                f"Failed to resolve retry chain {attempt.root_id}: {e}",
                exc_info=True,
                extra={"store_id": store_id},
            )
            metrics.record_error("ledger_write")
            return 0

    async def get_attempt(self, store_id: str, sync_log_id: str) -> Optional[SyncAttempt]:
        """Tenant-scoped lookup of one attempt."""
        return await self.ledger.get(store_id, sync_log_id)

    async def get_failed_syncs(self, store_id: str) -> List[Dict[str, Any]]:
        """Unresolved failed attempts of a store, newest first."""
        attempts = await self.ledger.list_unresolved_failures(
            store_id, self.config.failed_syncs_limit
        )
        return [attempt.to_failed_entry(self.config.max_retries) for attempt in attempts]

    async def get_status(self, store_id: str) -> StoreSyncStatus:
        """Sync health read-model for a store."""
        return StoreSyncStatus(
            last_sync_at=await self.ledger.last_success_at(store_id),
            record_counts=await self.entities.record_counts(store_id),
            recent_syncs=await self.ledger.list_recent(
                store_id, self.config.recent_syncs_limit
            ),
            unresolved_failures=await self.ledger.count_unresolved_failures(store_id),
        )

    async def chain_retry_count(self, store_id: str, attempt: SyncAttempt) -> int:
        """Retries already made anywhere in the attempt's chain."""
        return max(
            attempt.retry_count,
            await self.ledger.chain_retry_count(store_id, attempt.root_id),
        )
