"""
Tests for core.validators module.
"""
import hashlib

import pytest

from core.exceptions import ValidationError
from core.validators import (
    hash_email,
    validate_action,
    validate_entity_list,
    validate_resource,
    validate_sync_log_id,
    validate_webhook_data,
)


class TestValidateSyncLogId:
    """Tests for validate_sync_log_id function."""

    def test_valid_uuid(self):
        value = "a1b2c3d4-e5f6-7890-abcd-ef1234567890"
        assert validate_sync_log_id(value) == value

    @pytest.mark.parametrize("value", [
        "not-a-uuid",
        "A1B2C3D4-E5F6-7890-ABCD-EF1234567890",
        "a1b2c3d4e5f67890abcdef1234567890",
        "a1b2c3d4-e5f6-7890-abcd-ef1234567890x",
        "",
        None,
        123,
    ])
    def test_invalid_ids(self, value):
        with pytest.raises(ValidationError) as exc_info:
            validate_sync_log_id(value)
        assert exc_info.value.field == "syncLogId"
        assert exc_info.value.message == "Must be a valid UUID"


class TestValidateResource:
    """Tests for validate_resource function."""

    @pytest.mark.parametrize("resource", ["order", "product", "customer", "category"])
    def test_valid_resources(self, resource):
        assert validate_resource(resource) == resource

    @pytest.mark.parametrize("resource", ["orders", "coupon", "", None, "ORDER"])
    def test_invalid_resources(self, resource):
        with pytest.raises(ValidationError) as exc_info:
            validate_resource(resource)
        assert exc_info.value.field == "resource"
        assert "order, product, customer, category" in exc_info.value.message


class TestValidateAction:
    """Tests for validate_action function."""

    def test_valid_actions(self):
        assert validate_action("created") == "created"
        assert validate_action("updated") == "updated"

    def test_deleted_not_supported(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_action("deleted")
        assert exc_info.value.field == "action"


class TestValidateWebhookData:
    """Tests for validate_webhook_data function."""

    def test_object(self):
        data = {"wc_order_id": 1}
        assert validate_webhook_data(data) is data

    @pytest.mark.parametrize("value", [None, [], "order", 42])
    def test_non_objects(self, value):
        with pytest.raises(ValidationError) as exc_info:
            validate_webhook_data(value)
        assert str(exc_info.value) == "data: Must be an object"


class TestValidateEntityList:
    """Tests for validate_entity_list function."""

    def test_list(self):
        assert validate_entity_list("orders", []) == []

    def test_not_a_list(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_entity_list("orders", {"wc_order_id": 1})
        assert str(exc_info.value) == "orders: Must be an array"


class TestHashEmail:
    """Tests for hash_email function."""

    def test_sha256_hex(self):
        expected = hashlib.sha256(b"jane@example.com").hexdigest()
        assert hash_email("jane@example.com") == expected

    def test_normalizes_case_and_whitespace(self):
        assert hash_email("  Jane@Example.COM ") == hash_email("jane@example.com")
