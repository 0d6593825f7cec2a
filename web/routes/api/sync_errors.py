"""Failed sync listing and manual retry endpoints."""
from fastapi import APIRouter, Depends, Request

from core.models import Store
from web.routes.auth import require_store
from web.schemas import ErrorResponse, FailedSyncsResponse, RetryResponse
from ._deps import (
    READ_LIMIT,
    RETRY_LIMIT,
    failure_response,
    get_logger,
    get_services,
    limiter,
    success,
)

router = APIRouter(tags=["sync"])
logger = get_logger(__name__)


@router.get("/sync/errors", response_model=FailedSyncsResponse)
@limiter.limit(READ_LIMIT)
async def list_failed_syncs(request: Request, store: Store = Depends(require_store)):
    """Failed attempts of the store that no retry has resolved, newest first."""
    failed = await get_services(request).ledger.get_failed_syncs(store.id)
    return success({"failedSyncs": failed})


@router.post(
    "/sync/retry/{sync_log_id}",
    response_model=RetryResponse,
    response_model_exclude_unset=True,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
@limiter.limit(RETRY_LIMIT)
async def retry_sync(request: Request, sync_log_id: str, store: Store = Depends(require_store)):
    """
    Re-submit the batch of a failed attempt.

    Runs the retry inline. A retry that fails again is reported as a sync
    error and shows up as a new entry in the failed syncs list.
    """
    outcome = await get_services(request).retry_scheduler.schedule_retry(store.id, sync_log_id)

    if outcome.failure is not None:
        return failure_response(outcome.failure)

    return success(outcome.to_dict())
