"""
Resource router for storefront webhooks.

A webhook carries one entity in an envelope:

    {"resource": "order", "action": "created", "data": {...}}

The router checks the envelope, wraps ``data`` into a one-element batch and
hands it to the sync service tagged ``webhook:<plural>``. ``action`` is
provenance only: created and updated both upsert.
"""
from typing import Any

from core.exceptions import ValidationError
from core.models import Resource, SyncOutcome, SyncSource, WebhookAction
from core.observability import get_logger
from core.sync_service import SyncService
from core.validators import validate_action, validate_resource, validate_webhook_data

logger = get_logger(__name__)


class ResourceRouter:
    """Dispatches webhook envelopes to the sync service."""

    def __init__(self, sync_service: SyncService):
        self.sync_service = sync_service

    async def route(self, store_id: str, envelope: Any) -> SyncOutcome:
        """
        Route one webhook.

        Returns:
            The ingest outcome unchanged, or a VALIDATION failure when the
            envelope is malformed (nothing is written in that case)
        """
        try:
            if not isinstance(envelope, dict):
                raise ValidationError("body", "Must be an object")
            resource = Resource(validate_resource(envelope.get("resource")))
            action = WebhookAction(validate_action(envelope.get("action")))
            data = validate_webhook_data(envelope.get("data"))
        except ValidationError as e:
            logger.warning(f"Rejected webhook: {e}", extra={"store_id": store_id})
            return SyncOutcome.failed(e.to_failure())

        logger.info(
            f"Webhook {resource.value}.{action.value}",
            extra={"store_id": store_id, "wc_id": data.get(resource.id_field)},
        )
        return await self.sync_service.ingest(
            store_id,
            resource,
            [data],
            sync_type=SyncSource.WEBHOOK.sync_type(resource),
        )
