"""
Manual retry of failed sync attempts.

A retry re-submits the batch captured on the failed ledger row through the
normal ingest path, with the same sync_type and resource. It appends a new
ledger row linked to the failed one; the failed row itself is never
rewritten except for ``resolved_at``.

Retry chains:
- ``root_id`` ties every attempt of a chain to the first failure
- a successful retry resolves every failed row of its chain, which drops
  them from the failed-syncs listing
- a failed retry adds a new failed row, which stays listed
- the chain is capped at ``max_retries`` retries
- retries of one chain run one at a time, so concurrent requests cannot
  push a chain past the cap
"""
import asyncio
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import Dict, Optional, Tuple

from core.config import SyncConfig, config
from core.events import EventBus, SyncEvent
from core.exceptions import NotFoundError, ValidationError
from core.ledger import SyncLedger
from core.models import Resource, RetryOutcome, SyncAttempt
from core.observability import get_logger, metrics
from core.sync_service import SyncService
from core.validators import validate_sync_log_id

logger = get_logger(__name__)


class RetryScheduler:
    """Re-submits failed attempts on request."""

    def __init__(
        self,
        ledger: SyncLedger,
        sync_service: SyncService,
        events: EventBus,
        sync_config: Optional[SyncConfig] = None,
    ):
        self.ledger = ledger
        self.sync_service = sync_service
        self.events = events
        self.config = sync_config or config.sync
        self._chain_locks: Dict[Tuple[str, str], asyncio.Lock] = {}
        self._chain_waiters: Dict[Tuple[str, str], int] = {}

    @asynccontextmanager
    async def _claim_chain(self, store_id: str, root_id: str):
        """Hold the retry claim of one chain; the lock is dropped once unused."""
        key = (store_id, root_id)
        lock = self._chain_locks.setdefault(key, asyncio.Lock())
        self._chain_waiters[key] = self._chain_waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._chain_waiters[key] -= 1
            if not self._chain_waiters[key]:
                del self._chain_waiters[key]
                del self._chain_locks[key]

    async def schedule_retry(self, store_id: str, sync_log_id: str) -> RetryOutcome:
        """
        Retry one failed attempt of a store.

        Checks run in order and stop at the first failure:
        1. malformed id: VALIDATION, no lookup is made
        2. missing or owned by another store: NOT_FOUND
        3. not failed, or already resolved: VALIDATION
        4. chain already retried ``max_retries`` times: not scheduled,
           status ``max_retries_reached``

        Returns:
            RetryOutcome; ``failure`` carries the SYNC failure when the
            re-submitted batch failed again
        """
        try:
            validate_sync_log_id(sync_log_id)
        except ValidationError as e:
            return RetryOutcome(
                sync_log_id=str(sync_log_id),
                status="rejected",
                failure=e.to_failure(),
            )

        attempt = await self.ledger.get_attempt(store_id, sync_log_id)
        if attempt is None:
            return RetryOutcome(
                sync_log_id=sync_log_id,
                status="not_found",
                failure=NotFoundError("Sync log not found").to_failure(),
            )

        # Shielded so a cancelled request cannot release the claim mid-retry
        return await asyncio.shield(self._retry_claimed(store_id, attempt))

    async def _retry_claimed(self, store_id: str, attempt: SyncAttempt) -> RetryOutcome:
        async with self._claim_chain(store_id, attempt.root_id):
            # Re-read under the claim: an earlier holder may have resolved the chain
            current = await self.ledger.get_attempt(store_id, attempt.id)
            return await self._retry(store_id, current or attempt)

    async def _retry(self, store_id: str, attempt: SyncAttempt) -> RetryOutcome:
        sync_log_id = attempt.id
        rejection = None
        if not attempt.is_failed:
            rejection = "Sync log is not in failed state; only failed syncs can be retried"
        elif attempt.is_resolved:
            rejection = "Sync log was already resolved by a successful retry"
        elif attempt.payload is None:
            rejection = "Sync log has no captured payload to retry"
        if rejection:
            return RetryOutcome(
                sync_log_id=sync_log_id,
                status="rejected",
                retry_count=attempt.retry_count,
                failure=ValidationError("syncLogId", rejection).to_failure(),
            )

        retries = await self.ledger.chain_retry_count(store_id, attempt)
        if retries >= self.config.max_retries:
            logger.info(
                f"Max retries reached for {sync_log_id}",
                extra={"store_id": store_id, "retry_count": retries},
            )
            return RetryOutcome(
                sync_log_id=sync_log_id,
                status=RetryOutcome.MAX_RETRIES_REACHED,
                retry_count=retries,
            )

        logger.info(
            f"Retrying {attempt.sync_type} attempt {sync_log_id}",
            extra={"store_id": store_id, "retry_count": retries + 1},
        )
        outcome = await self.sync_service.ingest(
            store_id,
            Resource(attempt.resource),
            attempt.payload,
            sync_type=attempt.sync_type,
            retry_of=replace(attempt, retry_count=retries),
        )
        metrics.record_request("sync.retry")

        await self.events.emit(
            SyncEvent.RETRY_SCHEDULED,
            {
                "store_id": store_id,
                "sync_log_id": sync_log_id,
                "retry_log_id": outcome.sync_log_id,
                "retry_count": retries + 1,
                "succeeded": outcome.ok,
            },
            source="retry_scheduler",
        )

        if not outcome.ok:
            logger.warning(
                f"Retry of {sync_log_id} failed: {outcome.failure.message}",
                extra={"store_id": store_id, "retry_log_id": outcome.sync_log_id},
            )
            return RetryOutcome(
                sync_log_id=sync_log_id,
                status=RetryOutcome.RETRY_FAILED,
                scheduled=True,
                retry_count=retries + 1,
                retry_log_id=outcome.sync_log_id,
                failure=outcome.failure,
            )

        await self.ledger.resolve_chain(store_id, attempt)
        return RetryOutcome(
            sync_log_id=sync_log_id,
            status=RetryOutcome.RETRY_SUCCEEDED,
            scheduled=True,
            retry_count=retries + 1,
            retry_log_id=outcome.sync_log_id,
            upserted=outcome.upserted,
        )
