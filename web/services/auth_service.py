"""
Store API key authentication service.

Storefront plugins authenticate with ``Authorization: Bearer <token>`` where
the token is base64 of ``storeUrl:apiKey``. Only a bcrypt hash of the key is
stored, and verification runs in a worker thread.
"""
import asyncio
import base64
import binascii
import logging
from typing import Optional, Tuple

from core.exceptions import AuthError
from core.models import Store
from core.repositories import StoresRepository
from core.repositories.stores_repo import normalize_store_url, verify_api_key

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def encode_store_token(store_url: str, api_key: str) -> str:
    """Build the bearer token a plugin sends for a store."""
    return base64.b64encode(f"{store_url}:{api_key}".encode("utf-8")).decode("ascii")


def parse_store_token(authorization: Optional[str]) -> Tuple[str, str]:
    """
    Split an Authorization header into store URL and API key.

    The key is taken after the last ':' so URLs with a scheme or port
    survive intact.

    Raises:
        AuthError: If the header is missing or malformed
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise AuthError("Missing or invalid authorization header")

    token = authorization[len(BEARER_PREFIX):].strip()
    try:
        decoded = base64.b64decode(token, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        raise AuthError("Invalid API key format") from None

    store_url, _, api_key = decoded.rpartition(":")
    if not store_url or not api_key:
        raise AuthError("Invalid API key format")

    return normalize_store_url(store_url), api_key


async def authenticate_store(stores: StoresRepository, authorization: Optional[str]) -> Store:
    """
    Resolve the calling store from its credentials.

    Returns:
        The active store the credentials belong to

    Raises:
        AuthError: On missing, malformed or rejected credentials
    """
    store_url, api_key = parse_store_token(authorization)

    row = await stores.get_by_url(store_url)
    if not row:
        logger.warning(f"Auth failed: unknown or inactive store {store_url}")
        raise AuthError("Store not found or inactive")

    if not await asyncio.to_thread(verify_api_key, api_key, row["api_key_hash"]):
        logger.warning(f"Auth failed: invalid API key for {store_url}")
        raise AuthError("Invalid API key")

    return Store.from_row(row)
