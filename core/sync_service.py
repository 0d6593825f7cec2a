"""
Sync service: the single ingest path for webhooks, batch sync and retries.

Every ingest call runs the upsert pipeline and then appends the outcome to
the sync ledger. Batches rejected by validation leave no ledger row, since
nothing was attempted.

Features:
- One coordinator for both ingress paths, tagged by sync_type
- Started ingests run to completion even if the request is cancelled
- Observability: timing, per-sync_type counters and events
"""
import asyncio
from typing import Any, Optional, Sequence

from core.events import EventBus, SyncEvent
from core.exceptions import ErrorKind
from core.ledger import SyncLedger
from core.models import (
    Resource,
    SyncAttempt,
    SyncOutcome,
    SyncSource,
    dump_entities,
    utc_now,
)
from core.observability import get_logger, Timer, metrics
from core.pipeline import UpsertPipeline

logger = get_logger(__name__)


class SyncService:
    """
    Coordinates the upsert pipeline and the sync ledger.

    Used by the webhook router, the batch sync endpoints and the retry
    scheduler; all three get identical upsert semantics.
    """

    def __init__(self, pipeline: UpsertPipeline, ledger: SyncLedger, events: EventBus):
        self.pipeline = pipeline
        self.ledger = ledger
        self.events = events

    async def ingest(
        self,
        store_id: str,
        resource: Resource,
        entities: Sequence[Any],
        sync_type: str,
        retry_of: Optional[SyncAttempt] = None,
    ) -> SyncOutcome:
        """
        Upsert a batch and record the attempt.

        The work is shielded from cancellation: once started, the batch and
        its ledger row complete even if the caller goes away.

        Args:
            store_id: Tenant the batch belongs to
            resource: Entity type of every element
            entities: Raw dicts or parsed payloads
            sync_type: Provenance tag, e.g. ``webhook:orders``
            retry_of: Failed attempt being retried, if any

        Returns:
            SyncOutcome with the upserted count and ledger row id, or a
            Failure (VALIDATION before storage, SYNC after a rollback)
        """
        return await asyncio.shield(
            self._ingest(store_id, resource, entities, sync_type, retry_of)
        )

    async def _ingest(
        self,
        store_id: str,
        resource: Resource,
        entities: Sequence[Any],
        sync_type: str,
        retry_of: Optional[SyncAttempt],
    ) -> SyncOutcome:
        started_at = utc_now()

        with Timer(f"ingest:{sync_type}") as timer:
            result = await self.pipeline.upsert(store_id, resource, entities)

        if result.failure and result.failure.kind == ErrorKind.VALIDATION:
            metrics.record_error("validation")
            return SyncOutcome.failed(result.failure)

        attempt = await self.ledger.record_attempt(
            store_id,
            sync_type,
            resource,
            started_at=started_at,
            upserted=result.upserted,
            failure=result.failure,
            payload=dump_entities(result.entities) if result.failure else None,
            retry_of=retry_of,
        )
        sync_log_id = attempt.id if attempt else None

        metrics.record_sync(sync_type, result.ok, result.upserted)
        metrics.record_timing(f"ingest:{sync_type}", timer.elapsed_ms)

        event_data = {
            "store_id": store_id,
            "sync_type": sync_type,
            "sync_log_id": sync_log_id,
            "duration_ms": round(timer.elapsed_ms, 2),
        }

        if result.failure:
            await self.events.emit(
                SyncEvent.SYNC_FAILED,
                {**event_data, "error": result.failure.message},
            )
            return SyncOutcome.failed(result.failure, sync_log_id)

        logger.info(
            f"{sync_type} sync completed: {result.upserted} upserted",
            extra={"store_id": store_id, "sync_log_id": sync_log_id},
        )
        await self.events.emit(
            SyncEvent.SYNC_COMPLETED,
            {**event_data, "records_synced": result.upserted},
        )
        await self.events.emit(
            SyncEvent.for_resource(resource.plural),
            {**event_data, "count": result.upserted},
        )
        return SyncOutcome(upserted=result.upserted, sync_log_id=sync_log_id)

    async def sync_batch(
        self,
        store_id: str,
        resource: Resource,
        entities: Sequence[Any],
    ) -> SyncOutcome:
        """Bulk ingress: forward a whole batch tagged ``bulk:<plural>``."""
        return await self.ingest(
            store_id,
            resource,
            entities,
            sync_type=SyncSource.BULK.sync_type(resource),
        )
