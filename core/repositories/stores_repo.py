"""
Stores repository for tenant resolution.

Stores are provisioned by the store-connect service; this core only reads
them. ``create`` exists for provisioning scripts and test fixtures.

API keys are stored as bcrypt hashes, the format store-connect writes.
"""
import uuid
from typing import Any, Dict, Optional

from passlib.context import CryptContext

from core.models import Store, utc_now
from core.repositories.base import BaseRepository
from core.observability import get_logger

logger = get_logger(__name__)

api_key_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def normalize_store_url(url: str) -> str:
    """Lower-case a store URL and strip trailing slashes."""
    return url.strip().rstrip("/").lower()


def hash_api_key(api_key: str, rounds: Optional[int] = None) -> str:
    """bcrypt hash of an API key; ``rounds`` overrides the default cost."""
    if rounds is not None:
        return api_key_context.handler("bcrypt").using(rounds=rounds).hash(api_key)
    return api_key_context.hash(api_key)


def verify_api_key(api_key: str, api_key_hash: str) -> bool:
    """
    Check an API key against its stored hash.

    A stored value that is not a bcrypt hash never matches.
    """
    try:
        return api_key_context.verify(api_key, api_key_hash)
    except ValueError:
        logger.warning("Stored api_key_hash is not a recognised bcrypt hash")
        return False


class StoresRepository(BaseRepository):
    """Repository for tenant rows."""

    async def get_by_url(self, store_url: str) -> Optional[Dict[str, Any]]:
        """Active store row (including api_key_hash) for a normalized URL."""
        return await self.store.fetch_one(
            """
            SELECT id, store_url, api_key_hash, plan, connected_at, last_sync_at, is_active
            FROM stores
            WHERE store_url = ? AND is_active = TRUE
            """,
            [normalize_store_url(store_url)],
        )

    async def get(self, store_id: str) -> Optional[Store]:
        row = await self.store.fetch_one(
            """
            SELECT id, store_url, plan, connected_at, last_sync_at, is_active
            FROM stores WHERE id = ?
            """,
            [store_id],
        )
        return Store.from_row(row) if row else None

    async def create(
        self,
        store_url: str,
        api_key: str,
        plan: str = "free",
        hash_rounds: Optional[int] = None,
    ) -> Store:
        """Register a store with a bcrypt-hashed API key."""
        store = Store(
            id=str(uuid.uuid4()),
            store_url=normalize_store_url(store_url),
            plan=plan,
            connected_at=utc_now(),
        )
        await self.store.execute(
            """
            INSERT INTO stores (id, store_url, api_key_hash, plan, connected_at, is_active)
            VALUES (?, ?, ?, ?, ?, TRUE)
            """,
            [
                store.id,
                store.store_url,
                hash_api_key(api_key, hash_rounds),
                store.plan,
                store.connected_at,
            ],
        )
        logger.info(f"Registered store {store.store_url}", extra={"store_id": store.id})
        return store
