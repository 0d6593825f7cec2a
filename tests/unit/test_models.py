"""
Tests for core.models module.
"""
import pytest
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError as PydanticValidationError

from core.exceptions import ErrorKind, Failure, ValidationError
from core.models import (
    CategoryPayload,
    CustomerPayload,
    OrderPayload,
    ProductPayload,
    Resource,
    RetryOutcome,
    StoreHealth,
    StoreSyncStatus,
    SyncAttempt,
    SyncOutcome,
    SyncSource,
    dump_entities,
    format_timestamp,
    parse_entities,
    to_db_timestamp,
)
from core.validators import hash_email

STORE_ID = "550e8400-e29b-41d4-a716-446655440000"


class TestResource:
    """Tests for Resource enum."""

    def test_plural_and_table(self):
        assert Resource.ORDER.plural == "orders"
        assert Resource.CATEGORY.plural == "categories"
        assert Resource.CATEGORY.table == "categories"

    def test_id_field(self):
        assert Resource.ORDER.id_field == "wc_order_id"
        assert Resource.CUSTOMER.id_field == "wc_customer_id"

    def test_payload_model(self):
        assert Resource.PRODUCT.payload_model is ProductPayload

    def test_from_plural(self):
        assert Resource.from_plural("customers") is Resource.CUSTOMER
        with pytest.raises(ValidationError):
            Resource.from_plural("coupons")

    def test_sync_type_tags(self):
        assert SyncSource.WEBHOOK.sync_type(Resource.ORDER) == "webhook:orders"
        assert SyncSource.BULK.sync_type(Resource.CATEGORY) == "bulk:categories"


class TestOrderPayload:
    """Tests for OrderPayload schema."""

    def test_valid_order(self, make_order):
        order = OrderPayload.model_validate(make_order())
        assert order.wc_id == 1001
        assert order.total == 59.9
        assert len(order.items) == 2

    def test_row_normalization(self, make_order):
        order = OrderPayload.model_validate(
            make_order(customer_id=0, currency=None, date_created="2026-01-10T16:30:00+02:00")
        )
        row = order.to_row(STORE_ID)
        assert row["store_id"] == STORE_ID
        assert row["customer_wc_id"] is None
        assert row["currency"] == "USD"
        assert row["date_created"] == datetime(2026, 1, 10, 14, 30)

    def test_naive_dates_are_utc(self, make_order):
        order = OrderPayload.model_validate(make_order(date_created="2026-01-10T14:30:00"))
        assert order.date_created.tzinfo == timezone.utc
        assert order.to_row(STORE_ID)["date_created"] == datetime(2026, 1, 10, 14, 30)

    def test_coupon_list_joined(self, make_order):
        assert OrderPayload.model_validate(make_order(coupon_used=["WELCOME", "VIP"])).coupon_used == "WELCOME,VIP"
        assert OrderPayload.model_validate(make_order(coupon_used=[])).coupon_used is None

    def test_item_rows(self, make_order):
        order = OrderPayload.model_validate(make_order())
        items = order.item_rows(STORE_ID)
        assert [item["product_name"] for item in items] == ["Green Tea", "Matcha Whisk"]
        assert all(item["wc_order_id"] == 1001 for item in items)

    def test_order_without_items(self, make_order):
        order = OrderPayload.model_validate(make_order(items=None))
        assert order.item_rows(STORE_ID) == []

    def test_extra_fields_ignored(self, make_order):
        order = OrderPayload.model_validate(make_order(billing={"city": "Kyiv"}))
        assert not hasattr(order, "billing")

    @pytest.mark.parametrize("field", ["wc_order_id", "date_created", "status", "total"])
    def test_required_fields(self, make_order, field):
        payload = make_order()
        del payload[field]
        with pytest.raises(PydanticValidationError):
            OrderPayload.model_validate(payload)

    def test_string_id_rejected(self, make_order):
        with pytest.raises(PydanticValidationError):
            OrderPayload.model_validate(make_order(wc_order_id="1001"))


class TestProductPayload:
    """Tests for ProductPayload schema."""

    def test_row_defaults(self, make_product):
        row = ProductPayload.model_validate(make_product(category_id=0)).to_row(STORE_ID)
        assert row["category_wc_id"] is None
        assert row["status"] == "publish"
        assert row["type"] == "simple"

    def test_blank_name_rejected(self, make_product):
        with pytest.raises(PydanticValidationError):
            ProductPayload.model_validate(make_product(name="   "))


class TestCustomerPayload:
    """Tests for CustomerPayload schema."""

    def test_email_is_hashed(self, make_customer):
        customer = CustomerPayload.model_validate(make_customer())
        assert customer.email is None
        assert customer.email_hash == hash_email("jane.doe@example.com")
        assert "email" not in customer.model_dump()

    def test_raw_email_never_dumped(self, make_customer):
        dumped = dump_entities([CustomerPayload.model_validate(make_customer())])
        assert "email" not in dumped[0]
        assert "Jane.Doe@Example.com" not in str(dumped)

    def test_given_hash_kept(self, make_customer):
        given = "a" * 64
        customer = CustomerPayload.model_validate(make_customer(email_hash=given))
        assert customer.email_hash == given

    def test_invalid_hash_rejected(self, make_customer):
        with pytest.raises(PydanticValidationError):
            CustomerPayload.model_validate(make_customer(email=None, email_hash="not-a-hash"))

    def test_row_defaults(self):
        row = CustomerPayload.model_validate({"wc_customer_id": 7}).to_row(STORE_ID)
        assert row["email_hash"] is None
        assert row["total_spent"] == 0
        assert row["order_count"] == 0


class TestCategoryPayload:
    """Tests for CategoryPayload schema."""

    def test_root_parent_is_null(self, make_category):
        row = CategoryPayload.model_validate(make_category(parent_id=0)).to_row(STORE_ID)
        assert row["parent_wc_id"] is None

    def test_product_count_default(self):
        row = CategoryPayload.model_validate({"wc_category_id": 3, "name": "Cups"}).to_row(STORE_ID)
        assert row["product_count"] == 0


class TestParseEntities:
    """Tests for parse_entities batch validation."""

    def test_parses_all(self, make_order):
        parsed = parse_entities(Resource.ORDER, [make_order(1), make_order(2)])
        assert [order.wc_order_id for order in parsed] == [1, 2]

    def test_names_offending_element(self, make_order):
        bad = make_order(2)
        del bad["total"]
        with pytest.raises(ValidationError) as exc_info:
            parse_entities(Resource.ORDER, [make_order(1), bad])
        assert exc_info.value.field == "orders[1].total"

    def test_names_nested_item_field(self, make_order):
        order = make_order()
        order["items"][0]["quantity"] = 0
        with pytest.raises(ValidationError) as exc_info:
            parse_entities(Resource.ORDER, [order])
        assert exc_info.value.field == "orders[0].items[0].quantity"

    def test_not_a_list(self, make_order):
        with pytest.raises(ValidationError) as exc_info:
            parse_entities(Resource.ORDER, make_order())
        assert exc_info.value.field == "orders"

    def test_parsed_payloads_pass_through(self, make_category):
        category = CategoryPayload.model_validate(make_category())
        assert parse_entities(Resource.CATEGORY, [category])[0] is category

    def test_dumped_batch_parses_back_to_same_rows(self, make_order):
        """Captured retry payloads rebuild identical storage rows."""
        parsed = parse_entities(Resource.ORDER, [make_order()])
        reparsed = parse_entities(Resource.ORDER, dump_entities(parsed))
        assert reparsed[0].to_row(STORE_ID) == parsed[0].to_row(STORE_ID)
        assert reparsed[0].item_rows(STORE_ID) == parsed[0].item_rows(STORE_ID)


class TestTimestamps:
    """Tests for timestamp helpers."""

    def test_format_timestamp(self):
        assert format_timestamp(datetime(2026, 1, 10, 14, 30)) == "2026-01-10T14:30:00Z"
        assert format_timestamp(None) is None

    def test_format_aware_timestamp(self):
        aware = datetime(2026, 1, 10, 16, 30, tzinfo=timezone(timedelta(hours=2)))
        assert format_timestamp(aware) == "2026-01-10T14:30:00Z"

    def test_to_db_timestamp(self):
        aware = datetime(2026, 1, 10, 16, 30, tzinfo=timezone(timedelta(hours=2)))
        assert to_db_timestamp(aware) == datetime(2026, 1, 10, 14, 30)
        assert to_db_timestamp(None) is None


class TestSyncAttempt:
    """Tests for SyncAttempt ledger rows."""

    def _row(self, **overrides):
        row = {
            "id": "a1b2c3d4-e5f6-7890-abcd-ef1234567890",
            "store_id": STORE_ID,
            "sync_type": "bulk:orders",
            "resource": "order",
            "status": "failed",
            "records_synced": 0,
            "error_message": "Failed to upsert orders: disk full",
            "retry_count": 0,
            "retry_of": None,
            "root_id": None,
            "payload": '[{"wc_order_id": 1}]',
            "next_retry_at": datetime(2026, 1, 10, 14, 31),
            "resolved_at": None,
            "started_at": datetime(2026, 1, 10, 14, 30),
            "completed_at": datetime(2026, 1, 10, 14, 30, 1),
        }
        row.update(overrides)
        return row

    def test_from_row(self):
        attempt = SyncAttempt.from_row(self._row())
        assert attempt.payload == [{"wc_order_id": 1}]
        assert attempt.root_id == attempt.id
        assert attempt.is_failed
        assert not attempt.is_resolved

    def test_failed_entry(self):
        entry = SyncAttempt.from_row(self._row(retry_count=2)).to_failed_entry(max_retries=3)
        assert entry["syncType"] == "bulk:orders"
        assert entry["retryCount"] == 2
        assert entry["nextRetryAt"] == "2026-01-10T14:31:00Z"
        assert entry["retryable"] is True

    def test_not_retryable_at_cap(self):
        entry = SyncAttempt.from_row(self._row(retry_count=3)).to_failed_entry(max_retries=3)
        assert entry["retryable"] is False
        assert entry["nextRetryAt"] is None

    def test_chain_exhausted_root_not_retryable(self):
        """A root row inherits the retry budget its chain has used up."""
        row = self._row(retry_count=0, chain_retry_count=3)
        entry = SyncAttempt.from_row(row).to_failed_entry(max_retries=3)

        assert entry["retryCount"] == 0
        assert entry["chainRetryCount"] == 3
        assert entry["retryable"] is False
        assert entry["nextRetryAt"] is None

    def test_next_retry_follows_latest_chain_failure(self):
        row = self._row(
            retry_count=0,
            chain_retry_count=1,
            chain_next_retry_at=datetime(2026, 1, 10, 14, 35),
        )
        entry = SyncAttempt.from_row(row).to_failed_entry(max_retries=3)

        assert entry["retryable"] is True
        assert entry["nextRetryAt"] == "2026-01-10T14:35:00Z"

    def test_summary(self):
        summary = SyncAttempt.from_row(self._row(status="succeeded", records_synced=4)).to_summary()
        assert summary["status"] == "succeeded"
        assert summary["recordsSynced"] == 4
        assert summary["startedAt"] == "2026-01-10T14:30:00Z"


class TestOutcomes:
    """Tests for SyncOutcome and RetryOutcome."""

    def test_sync_outcome(self):
        outcome = SyncOutcome(upserted=2, sync_log_id="abc")
        assert outcome.ok
        assert outcome.to_dict() == {"upserted": 2, "syncLogId": "abc"}

    def test_failed_sync_outcome(self):
        outcome = SyncOutcome.failed(Failure(ErrorKind.SYNC, "Failed"), "abc")
        assert not outcome.ok
        assert outcome.upserted == 0
        assert outcome.sync_log_id == "abc"

    def test_retry_outcome_not_scheduled(self):
        outcome = RetryOutcome(
            sync_log_id="abc", status=RetryOutcome.MAX_RETRIES_REACHED, retry_count=5
        )
        assert outcome.to_dict() == {
            "scheduled": False,
            "status": "max_retries_reached",
            "syncLogId": "abc",
            "retryCount": 5,
        }

    def test_retry_outcome_scheduled(self):
        outcome = RetryOutcome(
            sync_log_id="abc",
            status=RetryOutcome.RETRY_SUCCEEDED,
            scheduled=True,
            retry_count=1,
            retry_log_id="def",
            upserted=2,
        )
        data = outcome.to_dict()
        assert data["retryLogId"] == "def"
        assert data["upserted"] == 2


class TestStoreSyncStatus:
    """Tests for the derived health label."""

    def test_never_synced(self):
        status = StoreSyncStatus(last_sync_at=None)
        assert status.health == StoreHealth.NEVER_SYNCED
        assert status.to_dict()["lastSync"] is None

    def test_healthy(self):
        status = StoreSyncStatus(
            last_sync_at=datetime(2026, 1, 10, 14, 30),
            record_counts={"orders": 2, "products": 1, "customers": 0, "categories": 0},
        )
        data = status.to_dict()
        assert data["status"] == "healthy"
        assert data["totalOrders"] == 2
        assert data["lastSyncAt"] == "2026-01-10T14:30:00Z"

    def test_degraded_with_unresolved_failure(self):
        status = StoreSyncStatus(last_sync_at=None, unresolved_failures=1)
        assert status.health == StoreHealth.DEGRADED
