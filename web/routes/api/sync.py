"""Batch sync and sync status endpoints."""
from typing import Sequence

from fastapi import APIRouter, Depends, Request

from core.models import EntityPayload, Resource, Store
from web.routes.auth import require_store
from web.schemas import (
    CategoriesSyncRequest,
    CustomersSyncRequest,
    ErrorResponse,
    OrdersSyncRequest,
    ProductsSyncRequest,
    SyncResultResponse,
    SyncStatusResponse,
)
from ._deps import (
    BATCH_LIMIT,
    READ_LIMIT,
    failure_response,
    get_logger,
    get_services,
    limiter,
    success,
)

router = APIRouter(tags=["sync"])
logger = get_logger(__name__)

BATCH_RESPONSES = {400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}


async def _sync_batch(
    request: Request,
    store: Store,
    resource: Resource,
    entities: Sequence[EntityPayload],
):
    outcome = await get_services(request).sync_service.sync_batch(store.id, resource, entities)
    if not outcome.ok:
        return failure_response(outcome.failure)
    return success(outcome.to_dict())


@router.post("/sync/orders", response_model=SyncResultResponse, responses=BATCH_RESPONSES)
@limiter.limit(BATCH_LIMIT)
async def sync_orders(
    request: Request,
    body: OrdersSyncRequest,
    store: Store = Depends(require_store),
):
    """Bulk upsert orders with their line items."""
    return await _sync_batch(request, store, Resource.ORDER, body.orders)


@router.post("/sync/products", response_model=SyncResultResponse, responses=BATCH_RESPONSES)
@limiter.limit(BATCH_LIMIT)
async def sync_products(
    request: Request,
    body: ProductsSyncRequest,
    store: Store = Depends(require_store),
):
    """Bulk upsert products."""
    return await _sync_batch(request, store, Resource.PRODUCT, body.products)


@router.post("/sync/customers", response_model=SyncResultResponse, responses=BATCH_RESPONSES)
@limiter.limit(BATCH_LIMIT)
async def sync_customers(
    request: Request,
    body: CustomersSyncRequest,
    store: Store = Depends(require_store),
):
    """Bulk upsert customers. Raw emails are hashed before storage."""
    return await _sync_batch(request, store, Resource.CUSTOMER, body.customers)


@router.post("/sync/categories", response_model=SyncResultResponse, responses=BATCH_RESPONSES)
@limiter.limit(BATCH_LIMIT)
async def sync_categories(
    request: Request,
    body: CategoriesSyncRequest,
    store: Store = Depends(require_store),
):
    return await _sync_batch(request, store, Resource.CATEGORY, body.categories)


@router.get("/sync/status", response_model=SyncStatusResponse)
@limiter.limit(READ_LIMIT)
async def get_sync_status(request: Request, store: Store = Depends(require_store)):
    """Last successful sync, record counts and recent attempts of the store."""
    status = await get_services(request).ledger.get_status(store.id)
    return success(status.to_dict())
