"""
Pytest configuration and shared fixtures.
"""
import pytest
import pytest_asyncio
from typing import Any, Callable, Dict

import duckdb
from fastapi.testclient import TestClient

from core.config import AppConfig, DatabaseConfig, SyncConfig, WebConfig
from core.duckdb_store import init_schema
from core.events import EventBus
from core.observability import metrics
from core.repositories.stores_repo import hash_api_key
from core.services import Services
from web.main import create_app
from web.services.auth_service import encode_store_token

STORE_ID = "550e8400-e29b-41d4-a716-446655440000"
STORE_URL = "https://shop.example.com"
API_KEY = "wc_live_primary_key"

OTHER_STORE_ID = "7c9e6679-7425-40de-944b-e07fc1f90ae7"
OTHER_STORE_URL = "https://other.example.com"
OTHER_API_KEY = "wc_live_other_key"

INACTIVE_STORE_URL = "https://closed.example.com"
INACTIVE_API_KEY = "wc_live_closed_key"

# Lowest bcrypt cost; keeps fixture hashing fast
HASH_ROUNDS = 4


@pytest.fixture(autouse=True)
def reset_metrics():
    """Metrics are process-global; start every test from zero."""
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def store_id() -> str:
    return STORE_ID


@pytest.fixture
def other_store_id() -> str:
    return OTHER_STORE_ID


@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    """Config pointing at a per-test DuckDB file, rate limits off."""
    return AppConfig(
        database=DatabaseConfig(path=tmp_path / "sync.duckdb", query_timeout=10.0),
        sync=SyncConfig(max_retries=3, ledger_write_delay=0.0),
        web=WebConfig(rate_limit_enabled=False),
    )


@pytest.fixture
def seeded_db(app_config):
    """DuckDB file with two active stores and one inactive store."""
    conn = duckdb.connect(str(app_config.database.path))
    try:
        init_schema(conn)
        for store_id, url, key, active in [
            (STORE_ID, STORE_URL, API_KEY, True),
            (OTHER_STORE_ID, OTHER_STORE_URL, OTHER_API_KEY, True),
            ("0f8fad5b-d9cb-469f-a165-70867728950e", INACTIVE_STORE_URL, INACTIVE_API_KEY, False),
        ]:
            conn.execute(
                """
                INSERT INTO stores (id, store_url, api_key_hash, plan, is_active)
                VALUES (?, ?, ?, 'free', ?)
                """,
                [store_id, url, hash_api_key(key, rounds=HASH_ROUNDS), active],
            )
    finally:
        conn.close()
    return app_config.database.path


@pytest_asyncio.fixture
async def services(app_config, seeded_db):
    """Started service container over the seeded database."""
    container = Services.build(app_config)
    await container.start()
    yield container
    await container.close()


@pytest.fixture
def client(app_config, seeded_db):
    """TestClient running the app lifespan against the seeded database."""
    app = create_app(app_config)
    with TestClient(app) as test_client:
        yield test_client


def auth_headers(store_url: str, api_key: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {encode_store_token(store_url, api_key)}"}


@pytest.fixture
def store_headers() -> Dict[str, str]:
    return auth_headers(STORE_URL, API_KEY)


@pytest.fixture
def other_store_headers() -> Dict[str, str]:
    return auth_headers(OTHER_STORE_URL, OTHER_API_KEY)


@pytest.fixture
def wrong_key_headers() -> Dict[str, str]:
    return auth_headers(STORE_URL, "wc_live_guessed_key")


@pytest.fixture
def inactive_store_headers() -> Dict[str, str]:
    return auth_headers(INACTIVE_STORE_URL, INACTIVE_API_KEY)


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


# ═══════════════════════════════════════════════════════════════════════════════
# PAYLOAD FACTORIES
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.fixture
def make_order() -> Callable[..., Dict[str, Any]]:
    """Order payload as sent by the storefront plugin."""
    def _make(wc_order_id: int = 1001, **overrides) -> Dict[str, Any]:
        order = {
            "wc_order_id": wc_order_id,
            "date_created": "2026-01-10T14:30:00Z",
            "date_modified": "2026-01-10T15:00:00Z",
            "status": "processing",
            "total": 59.9,
            "subtotal": 50.0,
            "tax_total": 4.9,
            "shipping_total": 5.0,
            "discount_total": 0.0,
            "currency": "EUR",
            "customer_id": 501,
            "payment_method": "stripe",
            "items": [
                {
                    "wc_product_id": 201,
                    "product_name": "Green Tea",
                    "sku": "GT-100",
                    "quantity": 2,
                    "subtotal": 30.0,
                    "total": 30.0,
                },
                {
                    "wc_product_id": 202,
                    "product_name": "Matcha Whisk",
                    "sku": "MW-1",
                    "quantity": 1,
                    "subtotal": 20.0,
                    "total": 20.0,
                },
            ],
        }
        order.update(overrides)
        return order

    return _make


@pytest.fixture
def make_product() -> Callable[..., Dict[str, Any]]:
    def _make(wc_product_id: int = 201, **overrides) -> Dict[str, Any]:
        product = {
            "wc_product_id": wc_product_id,
            "name": "Green Tea",
            "sku": "GT-100",
            "price": 15.0,
            "regular_price": 18.0,
            "sale_price": 15.0,
            "category_id": 11,
            "category_name": "Tea",
            "stock_quantity": 40,
            "stock_status": "instock",
        }
        product.update(overrides)
        return product

    return _make


@pytest.fixture
def make_customer() -> Callable[..., Dict[str, Any]]:
    def _make(wc_customer_id: int = 501, **overrides) -> Dict[str, Any]:
        customer = {
            "wc_customer_id": wc_customer_id,
            "email": "Jane.Doe@Example.com",
            "display_name": "Jane D.",
            "total_spent": 120.5,
            "order_count": 3,
            "first_order_date": "2025-11-02T09:00:00Z",
            "last_order_date": "2026-01-10T14:30:00Z",
        }
        customer.update(overrides)
        return customer

    return _make


@pytest.fixture
def make_category() -> Callable[..., Dict[str, Any]]:
    def _make(wc_category_id: int = 11, **overrides) -> Dict[str, Any]:
        category = {
            "wc_category_id": wc_category_id,
            "name": "Tea",
            "parent_id": 0,
            "product_count": 12,
        }
        category.update(overrides)
        return category

    return _make
