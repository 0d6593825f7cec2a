"""
Domain models for store sync data.

Provides the resource catalogue, pydantic schemas for the entity payloads
sent by the storefront, and the dataclasses passed between the pipeline,
ledger, router and retry scheduler.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Sequence, Type, Union

import orjson
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    ValidationError as PydanticValidationError,
    field_validator,
    model_validator,
)

from core.exceptions import Failure, ValidationError
from core.validators import hash_email, validate_entity_list


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════════════════════

class Resource(str, Enum):
    """Synced entity types."""
    ORDER = "order"
    PRODUCT = "product"
    CUSTOMER = "customer"
    CATEGORY = "category"

    @property
    def plural(self) -> str:
        """Plural name used in routes, batch bodies and sync_type tags."""
        return {
            Resource.ORDER: "orders",
            Resource.PRODUCT: "products",
            Resource.CUSTOMER: "customers",
            Resource.CATEGORY: "categories",
        }[self]

    @property
    def table(self) -> str:
        return self.plural

    @property
    def id_field(self) -> str:
        """Platform-native id column, e.g. ``wc_order_id``."""
        return f"wc_{self.value}_id"

    @property
    def payload_model(self) -> Type["EntityPayload"]:
        return PAYLOAD_MODELS[self]

    @classmethod
    def from_plural(cls, plural: str) -> "Resource":
        for resource in cls:
            if resource.plural == plural:
                return resource
        raise ValidationError("resource", "Unknown resource", plural)


class WebhookAction(str, Enum):
    """Webhook topics. Recorded for provenance only; both upsert."""
    CREATED = "created"
    UPDATED = "updated"


class SyncStatus(str, Enum):
    """Terminal state of a ledger row."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class StoreHealth(str, Enum):
    """Derived sync health label for a store."""
    NEVER_SYNCED = "never_synced"
    HEALTHY = "healthy"
    DEGRADED = "degraded"


class SyncSource(str, Enum):
    """Ingress path, the prefix of a sync_type tag."""
    WEBHOOK = "webhook"
    BULK = "bulk"

    def sync_type(self, resource: Resource) -> str:
        return f"{self.value}:{resource.plural}"


# ═══════════════════════════════════════════════════════════════════════════════
# TIMESTAMPS
# ═══════════════════════════════════════════════════════════════════════════════

def utc_now() -> datetime:
    """Current time as naive UTC, the form stored in DuckDB TIMESTAMP columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_db_timestamp(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive UTC for storage."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Render a stored (naive UTC) timestamp as ISO-8601 with a Z suffix."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat() + "Z"


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Naive timestamps from the platform are treated as UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _none_if_root(value: Optional[int]) -> Optional[int]:
    # The platform uses 0 for "no customer", "uncategorized" and "root category"
    if value is None or value <= 0:
        return None
    return value


# ═══════════════════════════════════════════════════════════════════════════════
# ENTITY PAYLOADS
# ═══════════════════════════════════════════════════════════════════════════════

class EntityPayload(BaseModel):
    """Base schema for entities sent by the storefront."""

    model_config = ConfigDict(extra="ignore")

    resource: ClassVar[Resource]

    @property
    def wc_id(self) -> int:
        return getattr(self, self.resource.id_field)

    def to_row(self, store_id: str) -> Dict[str, Any]:
        """Storage row for this entity, keyed by column name."""
        raise NotImplementedError


class OrderItemPayload(BaseModel):
    """Line item of an order."""

    model_config = ConfigDict(extra="ignore")

    wc_product_id: Optional[StrictInt] = None
    product_name: str = Field(min_length=1)
    sku: Optional[str] = None
    quantity: StrictInt = Field(ge=1)
    subtotal: Optional[StrictFloat] = None
    total: Optional[StrictFloat] = None

    @field_validator("wc_product_id")
    @classmethod
    def zero_product_is_none(cls, value: Optional[int]) -> Optional[int]:
        return _none_if_root(value)


class OrderPayload(EntityPayload):
    """Order as sent by the storefront."""

    resource: ClassVar[Resource] = Resource.ORDER

    wc_order_id: StrictInt
    date_created: datetime
    date_modified: Optional[datetime] = None
    status: str = Field(min_length=1)
    total: StrictFloat
    subtotal: Optional[StrictFloat] = None
    tax_total: Optional[StrictFloat] = None
    shipping_total: Optional[StrictFloat] = None
    discount_total: Optional[StrictFloat] = None
    currency: Optional[str] = None
    customer_id: Optional[StrictInt] = None
    payment_method: Optional[str] = None
    coupon_used: Optional[str] = None
    items: Optional[List[OrderItemPayload]] = None

    @field_validator("date_created", "date_modified")
    @classmethod
    def dates_as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    @field_validator("customer_id")
    @classmethod
    def zero_customer_is_none(cls, value: Optional[int]) -> Optional[int]:
        return _none_if_root(value)

    @field_validator("coupon_used", mode="before")
    @classmethod
    def join_coupons(cls, value: Any) -> Any:
        if isinstance(value, list):
            return ",".join(str(code) for code in value) or None
        return value

    def to_row(self, store_id: str) -> Dict[str, Any]:
        return {
            "store_id": store_id,
            "wc_order_id": self.wc_order_id,
            "date_created": to_db_timestamp(self.date_created),
            "date_modified": to_db_timestamp(self.date_modified),
            "status": self.status,
            "total": self.total,
            "subtotal": self.subtotal,
            "tax_total": self.tax_total,
            "shipping_total": self.shipping_total,
            "discount_total": self.discount_total,
            "currency": self.currency or "USD",
            "customer_wc_id": self.customer_id,
            "payment_method": self.payment_method,
            "coupon_used": self.coupon_used,
        }

    def item_rows(self, store_id: str) -> List[Dict[str, Any]]:
        """Storage rows for the order's line items."""
        return [
            {
                "store_id": store_id,
                "wc_order_id": self.wc_order_id,
                "wc_product_id": item.wc_product_id,
                "product_name": item.product_name,
                "sku": item.sku,
                "quantity": item.quantity,
                "subtotal": item.subtotal,
                "total": item.total,
            }
            for item in self.items or []
        ]


class ProductPayload(EntityPayload):
    """Product as sent by the storefront."""

    resource: ClassVar[Resource] = Resource.PRODUCT

    wc_product_id: StrictInt
    name: str
    sku: Optional[str] = None
    price: Optional[StrictFloat] = None
    regular_price: Optional[StrictFloat] = None
    sale_price: Optional[StrictFloat] = None
    category_id: Optional[StrictInt] = None
    category_name: Optional[str] = None
    stock_quantity: Optional[StrictInt] = None
    stock_status: Optional[str] = None
    status: Optional[str] = None
    type: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def dates_as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    @field_validator("category_id")
    @classmethod
    def zero_category_is_none(cls, value: Optional[int]) -> Optional[int]:
        return _none_if_root(value)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    def to_row(self, store_id: str) -> Dict[str, Any]:
        return {
            "store_id": store_id,
            "wc_product_id": self.wc_product_id,
            "name": self.name,
            "sku": self.sku,
            "price": self.price,
            "regular_price": self.regular_price,
            "sale_price": self.sale_price,
            "category_wc_id": self.category_id,
            "category_name": self.category_name,
            "stock_quantity": self.stock_quantity,
            "stock_status": self.stock_status,
            "status": self.status or "publish",
            "type": self.type or "simple",
            "created_at": to_db_timestamp(self.created_at),
            "updated_at": to_db_timestamp(self.updated_at),
        }


class CustomerPayload(EntityPayload):
    """
    Customer as sent by the storefront.

    A raw ``email`` is accepted only to be hashed; it is excluded from every
    dump so it never reaches storage, logs or the ledger payload.
    """

    resource: ClassVar[Resource] = Resource.CUSTOMER

    wc_customer_id: StrictInt
    email: Optional[str] = Field(default=None, exclude=True, repr=False)
    email_hash: Optional[str] = Field(default=None, pattern=r"^[0-9a-f]{64}$")
    display_name: Optional[str] = None
    total_spent: Optional[StrictFloat] = None
    order_count: Optional[StrictInt] = None
    first_order_date: Optional[datetime] = None
    last_order_date: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @field_validator("first_order_date", "last_order_date", "created_at")
    @classmethod
    def dates_as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    @model_validator(mode="after")
    def hash_raw_email(self) -> "CustomerPayload":
        if self.email is not None:
            if self.email.strip() and self.email_hash is None:
                self.email_hash = hash_email(self.email)
            self.email = None
        return self

    def to_row(self, store_id: str) -> Dict[str, Any]:
        return {
            "store_id": store_id,
            "wc_customer_id": self.wc_customer_id,
            "email_hash": self.email_hash,
            "display_name": self.display_name,
            "total_spent": self.total_spent if self.total_spent is not None else 0,
            "order_count": self.order_count if self.order_count is not None else 0,
            "first_order_date": to_db_timestamp(self.first_order_date),
            "last_order_date": to_db_timestamp(self.last_order_date),
            "created_at": to_db_timestamp(self.created_at),
        }


class CategoryPayload(EntityPayload):
    """Product category as sent by the storefront."""

    resource: ClassVar[Resource] = Resource.CATEGORY

    wc_category_id: StrictInt
    name: str
    parent_id: Optional[StrictInt] = None
    product_count: Optional[StrictInt] = None

    @field_validator("parent_id")
    @classmethod
    def zero_parent_is_none(cls, value: Optional[int]) -> Optional[int]:
        return _none_if_root(value)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    def to_row(self, store_id: str) -> Dict[str, Any]:
        return {
            "store_id": store_id,
            "wc_category_id": self.wc_category_id,
            "name": self.name,
            "parent_wc_id": self.parent_id,
            "product_count": self.product_count if self.product_count is not None else 0,
        }


PAYLOAD_MODELS: Dict[Resource, Type[EntityPayload]] = {
    Resource.ORDER: OrderPayload,
    Resource.PRODUCT: ProductPayload,
    Resource.CUSTOMER: CustomerPayload,
    Resource.CATEGORY: CategoryPayload,
}


def _error_field(prefix: str, loc: Sequence[Union[str, int]]) -> str:
    path = prefix
    for part in loc:
        path += f"[{part}]" if isinstance(part, int) else f".{part}"
    return path


def parse_entities(
    resource: Resource, entities: Sequence[Any]
) -> List[EntityPayload]:
    """
    Validate a batch against the resource schema.

    Already-parsed payloads pass through unchanged. The first invalid element
    fails the whole batch.

    Raises:
        ValidationError: naming the offending element and field, e.g.
            ``orders[1].total``
    """
    validate_entity_list(resource.plural, entities)
    model = resource.payload_model

    parsed = []
    for index, raw in enumerate(entities):
        if isinstance(raw, model):
            parsed.append(raw)
            continue
        try:
            parsed.append(model.model_validate(raw))
        except PydanticValidationError as e:
            error = e.errors()[0]
            raise ValidationError(
                _error_field(f"{resource.plural}[{index}]", error["loc"]),
                error["msg"],
            ) from None
    return parsed


def dump_entities(entities: Sequence[EntityPayload]) -> List[Dict[str, Any]]:
    """JSON-safe form of a parsed batch, as captured in the ledger."""
    return [entity.model_dump(mode="json", exclude_none=True) for entity in entities]


# ═══════════════════════════════════════════════════════════════════════════════
# DATACLASSES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class Store:
    """Tenant identity, resolved from request credentials."""
    id: str
    store_url: str
    plan: str = "free"
    is_active: bool = True
    connected_at: Optional[datetime] = None
    last_sync_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Store":
        return cls(
            id=row["id"],
            store_url=row["store_url"],
            plan=row.get("plan") or "free",
            is_active=bool(row.get("is_active", True)),
            connected_at=row.get("connected_at"),
            last_sync_at=row.get("last_sync_at"),
        )


@dataclass
class SyncAttempt:
    """One ledger row."""
    id: str
    store_id: str
    sync_type: str
    resource: str
    status: str
    records_synced: int = 0
    error_message: Optional[str] = None
    retry_count: int = 0
    retry_of: Optional[str] = None
    root_id: Optional[str] = None
    payload: Optional[List[Dict[str, Any]]] = None
    next_retry_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    # Filled by the failed-syncs listing only
    chain_retry_count: Optional[int] = None
    chain_next_retry_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "SyncAttempt":
        payload = row.get("payload")
        if isinstance(payload, (str, bytes)):
            payload = orjson.loads(payload)
        return cls(
            id=row["id"],
            store_id=row["store_id"],
            sync_type=row["sync_type"],
            resource=row["resource"],
            status=row["status"],
            records_synced=row.get("records_synced") or 0,
            error_message=row.get("error_message"),
            retry_count=row.get("retry_count") or 0,
            retry_of=row.get("retry_of"),
            root_id=row.get("root_id") or row["id"],
            payload=payload,
            next_retry_at=row.get("next_retry_at"),
            resolved_at=row.get("resolved_at"),
            started_at=row.get("started_at"),
            completed_at=row.get("completed_at"),
            chain_retry_count=row.get("chain_retry_count"),
            chain_next_retry_at=row.get("chain_next_retry_at"),
        )

    @property
    def is_failed(self) -> bool:
        return self.status == SyncStatus.FAILED.value

    @property
    def is_resolved(self) -> bool:
        return self.resolved_at is not None

    def to_summary(self) -> Dict[str, Any]:
        """Entry of the recentSyncs list."""
        return {
            "id": self.id,
            "syncType": self.sync_type,
            "resource": self.resource,
            "status": self.status,
            "recordsSynced": self.records_synced,
            "errorMessage": self.error_message,
            "retryCount": self.retry_count,
            "retryOf": self.retry_of,
            "startedAt": format_timestamp(self.started_at),
            "completedAt": format_timestamp(self.completed_at),
            "resolvedAt": format_timestamp(self.resolved_at),
        }

    def to_failed_entry(self, max_retries: int) -> Dict[str, Any]:
        """
        Entry of the failedSyncs list.

        ``retryable`` and ``nextRetryAt`` describe the whole retry chain: once
        the chain has used ``max_retries`` no row of it can be retried.
        """
        chain_retries = max(self.retry_count, self.chain_retry_count or 0)
        retryable = chain_retries < max_retries
        next_retry_at = self.chain_next_retry_at or self.next_retry_at
        return {
            "id": self.id,
            "syncType": self.sync_type,
            "resource": self.resource,
            "errorMessage": self.error_message,
            "retryCount": self.retry_count,
            "retryOf": self.retry_of,
            "startedAt": format_timestamp(self.started_at),
            "completedAt": format_timestamp(self.completed_at),
            "chainRetryCount": chain_retries,
            "nextRetryAt": format_timestamp(next_retry_at) if retryable else None,
            "retryable": retryable,
        }


@dataclass
class SyncOutcome:
    """Result of one ingest call: counts on success, a Failure otherwise."""
    upserted: int = 0
    sync_log_id: Optional[str] = None
    failure: Optional[Failure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def failed(cls, failure: Failure, sync_log_id: Optional[str] = None) -> "SyncOutcome":
        return cls(upserted=0, sync_log_id=sync_log_id, failure=failure)

    def to_dict(self) -> Dict[str, Any]:
        return {"upserted": self.upserted, "syncLogId": self.sync_log_id}


@dataclass
class RetryOutcome:
    """Result of a manual retry request."""
    sync_log_id: str
    status: str
    scheduled: bool = False
    retry_count: int = 0
    retry_log_id: Optional[str] = None
    upserted: int = 0
    failure: Optional[Failure] = None

    MAX_RETRIES_REACHED = "max_retries_reached"
    RETRY_SUCCEEDED = "retry_succeeded"
    RETRY_FAILED = "retry_failed"

    @property
    def ok(self) -> bool:
        return self.failure is None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "scheduled": self.scheduled,
            "status": self.status,
            "syncLogId": self.sync_log_id,
            "retryCount": self.retry_count,
        }
        if self.scheduled:
            result["retryLogId"] = self.retry_log_id
            result["upserted"] = self.upserted
        return result


@dataclass
class StoreSyncStatus:
    """Sync health read-model for one store."""
    last_sync_at: Optional[datetime]
    record_counts: Dict[str, int] = field(default_factory=dict)
    recent_syncs: List[SyncAttempt] = field(default_factory=list)
    unresolved_failures: int = 0

    @property
    def health(self) -> StoreHealth:
        if self.unresolved_failures > 0:
            return StoreHealth.DEGRADED
        if self.last_sync_at is None and not self.recent_syncs:
            return StoreHealth.NEVER_SYNCED
        return StoreHealth.HEALTHY

    def to_dict(self) -> Dict[str, Any]:
        last_sync = format_timestamp(self.last_sync_at)
        return {
            "lastSync": last_sync,
            "lastSyncAt": last_sync,
            "totalOrders": self.record_counts.get("orders", 0),
            "totalProducts": self.record_counts.get("products", 0),
            "totalCustomers": self.record_counts.get("customers", 0),
            "totalCategories": self.record_counts.get("categories", 0),
            "status": self.health.value,
            "recordCounts": dict(self.record_counts),
            "recentSyncs": [attempt.to_summary() for attempt in self.recent_syncs],
        }
