"""
Authentication dependencies for store-scoped endpoints.
"""
from fastapi import Request

from core.models import Store
from core.observability import add_log_context
from web.routes.api._deps import get_services
from web.services.auth_service import authenticate_store


async def require_store(request: Request) -> Store:
    """
    FastAPI dependency for endpoints that act on behalf of a store.

    Returns the authenticated store, raises AuthError otherwise. Every query
    made by the endpoint must be scoped to the returned store's id.
    """
    services = get_services(request)
    store = await authenticate_store(services.stores, request.headers.get("Authorization"))
    request.state.store = store
    add_log_context(store_id=store.id)
    return store
