"""
Repository layer over the shared DuckDB store:
- BaseRepository: Store access and the upsert statement builder
- EntitiesRepository: Orders, products, customers, categories
- LedgerRepository: Sync attempt rows
- StoresRepository: Tenant lookup
"""
from core.repositories.base import BaseRepository
from core.repositories.entities_repo import EntitiesRepository
from core.repositories.ledger_repo import LedgerRepository
from core.repositories.stores_repo import StoresRepository

__all__ = [
    "BaseRepository",
    "EntitiesRepository",
    "LedgerRepository",
    "StoresRepository",
]
