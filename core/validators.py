"""
Input validation functions for ingress envelopes and route parameters.

All validators raise ValidationError on invalid input and never touch storage.
"""

import hashlib
import re
from typing import Any, Dict, List

from core.exceptions import ValidationError


# Lower-case canonical UUID, as generated for ledger rows
SYNC_LOG_ID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"
)

VALID_RESOURCES = ("order", "product", "customer", "category")
VALID_ACTIONS = ("created", "updated")


def validate_sync_log_id(value: Any) -> str:
    """
    Validate a ledger row id taken from a URL path.

    Args:
        value: Raw path parameter

    Returns:
        The id, unchanged

    Raises:
        ValidationError: If the id is not a lower-case canonical UUID
    """
    if not isinstance(value, str) or not SYNC_LOG_ID_PATTERN.match(value):
        raise ValidationError("syncLogId", "Must be a valid UUID", value)
    return value


def validate_resource(value: Any) -> str:
    """
    Validate webhook resource name.

    Raises:
        ValidationError: If resource is not one of order/product/customer/category
    """
    if value not in VALID_RESOURCES:
        raise ValidationError(
            "resource",
            f"Must be one of: {', '.join(VALID_RESOURCES)}",
            value
        )
    return value


def validate_action(value: Any) -> str:
    """Validate webhook action name."""
    if value not in VALID_ACTIONS:
        raise ValidationError(
            "action",
            f"Must be one of: {', '.join(VALID_ACTIONS)}",
            value
        )
    return value


def validate_webhook_data(value: Any) -> Dict[str, Any]:
    """
    Validate the ``data`` member of a webhook envelope.

    Only the shape is checked here; entity fields are checked by the
    upsert pipeline against the resource schema.
    """
    if not isinstance(value, dict):
        raise ValidationError("data", "Must be an object")
    return value


def validate_entity_list(field: str, value: Any) -> List[Any]:
    """Validate that a batch member is a list."""
    if not isinstance(value, list):
        raise ValidationError(field, "Must be an array")
    return value


def hash_email(email: str) -> str:
    """
    Hash an email address for storage.

    The address is trimmed and lower-cased first so the same customer
    always maps to the same hash.
    """
    return hashlib.sha256(email.strip().lower().encode("utf-8")).hexdigest()
