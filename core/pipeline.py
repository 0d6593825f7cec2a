"""
Upsert pipeline: validate, normalize and write one batch of entities.

The batch is all-or-nothing. Validation failures never reach storage, and a
storage failure rolls back every row of the batch.
"""
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from core.exceptions import Failure, SyncError, ValidationError
from core.models import EntityPayload, Resource, parse_entities
from core.observability import get_logger, Timer, metrics
from core.repositories import EntitiesRepository

logger = get_logger(__name__)


@dataclass
class UpsertResult:
    """Outcome of one pipeline run."""
    upserted: int = 0
    entities: List[EntityPayload] = field(default_factory=list)
    failure: Optional[Failure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


class UpsertPipeline:
    """
    Writes batches of one resource type for one store.

    Re-validates every batch it receives, so callers other than the HTTP
    layer (webhook data, retry payloads) get the same schema checks.
    """

    def __init__(self, entities: EntitiesRepository):
        self.entities = entities

    async def upsert(
        self,
        store_id: str,
        resource: Resource,
        entities: Sequence[Any],
    ) -> UpsertResult:
        """
        Validate and upsert a batch.

        Returns:
            UpsertResult with the parsed entities; ``failure`` is a
            VALIDATION failure when the batch is rejected before storage,
            or a SYNC failure when the write was rolled back.
        """
        try:
            parsed = parse_entities(resource, entities)
        except ValidationError as e:
            logger.warning(
                f"Rejected {resource.plural} batch: {e.to_failure().message}",
                extra={"store_id": store_id},
            )
            return UpsertResult(failure=e.to_failure())

        if not parsed:
            return UpsertResult(upserted=0, entities=[])

        try:
            count = await self._write(store_id, resource, parsed)
        except SyncError as e:
            return UpsertResult(entities=parsed, failure=e.to_failure())

        return UpsertResult(upserted=count, entities=parsed)

    async def _write(
        self, store_id: str, resource: Resource, parsed: List[EntityPayload]
    ) -> int:
        """
        Run the batch transaction.

        Raises:
            SyncError: The write failed and the batch was rolled back
        """
        try:
            with Timer(f"upsert_{resource.plural}", logger) as timer:
                count = await self.entities.upsert_batch(store_id, resource, parsed)
        except Exception as e:
            logger.error(
                f"Failed to upsert {resource.plural}: {e}",
                exc_info=True,
                extra={"store_id": store_id, "batch_size": len(parsed)},
            )
            raise SyncError(
                f"Failed to upsert {resource.plural}", str(e) or type(e).__name__
            ) from e

        metrics.record_timing(f"upsert_{resource.plural}", timer.elapsed_ms)
        return count
