"""
Service container.

Builds the store, repositories and sync components once per process and
wires them together. The web app creates one container in its lifespan and
hands it to request handlers; nothing here is a module-level singleton.

Usage:
    services = Services.build()
    await services.start()
    outcome = await services.router.route(store_id, envelope)
    await services.close()
"""
from dataclasses import dataclass
from typing import Optional

from core.config import AppConfig, config
from core.duckdb_store import DuckDBStore
from core.events import EventBus
from core.ledger import SyncLedger
from core.observability import get_logger
from core.pipeline import UpsertPipeline
from core.repositories import EntitiesRepository, LedgerRepository, StoresRepository
from core.retry_scheduler import RetryScheduler
from core.sync_service import SyncService
from core.webhooks import ResourceRouter

logger = get_logger(__name__)


@dataclass
class Services:
    """Wired sync engine components."""

    store: DuckDBStore
    stores: StoresRepository
    entities: EntitiesRepository
    ledger: SyncLedger
    pipeline: UpsertPipeline
    sync_service: SyncService
    router: ResourceRouter
    retry_scheduler: RetryScheduler
    events: EventBus

    @classmethod
    def build(
        cls,
        app_config: Optional[AppConfig] = None,
        store: Optional[DuckDBStore] = None,
    ) -> "Services":
        """Create every component for one DuckDB file."""
        cfg = app_config or config
        store = store or DuckDBStore(cfg.database.path, cfg.database.query_timeout)
        events = EventBus()

        entities = EntitiesRepository(store)
        ledger = SyncLedger(LedgerRepository(store), entities, cfg.sync)
        pipeline = UpsertPipeline(entities)
        sync_service = SyncService(pipeline, ledger, events)

        return cls(
            store=store,
            stores=StoresRepository(store),
            entities=entities,
            ledger=ledger,
            pipeline=pipeline,
            sync_service=sync_service,
            router=ResourceRouter(sync_service),
            retry_scheduler=RetryScheduler(ledger, sync_service, events, cfg.sync),
            events=events,
        )

    async def start(self) -> None:
        await self.store.connect()

    async def close(self) -> None:
        await self.store.close()
        self.events.clear_handlers()
