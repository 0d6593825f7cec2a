"""Webhook ingress: one entity per call, routed by resource."""
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Request

from core.models import Store
from web.routes.auth import require_store
from web.schemas import ErrorResponse, SyncResultResponse
from ._deps import (
    WEBHOOK_LIMIT,
    failure_response,
    get_logger,
    get_services,
    limiter,
    success,
)

router = APIRouter(tags=["sync"])
logger = get_logger(__name__)


@router.post(
    "/sync/webhook",
    response_model=SyncResultResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
@limiter.limit(WEBHOOK_LIMIT)
async def receive_webhook(
    request: Request,
    envelope: Dict[str, Any] = Body(...),
    store: Store = Depends(require_store),
):
    """
    Upsert the entity carried by a storefront webhook.

    Body: ``{"resource": "order", "action": "created", "data": {...}}``
    """
    outcome = await get_services(request).router.route(store.id, envelope)
    if not outcome.ok:
        return failure_response(outcome.failure)
    return success(outcome.to_dict())
