"""
Pydantic request and response models for API endpoints.

Provides type-safe request bodies with automatic validation and response
models for documentation.
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from core.models import CategoryPayload, CustomerPayload, OrderPayload, ProductPayload


# ═══════════════════════════════════════════════════════════════════════════════
# COMMON MODELS
# ═══════════════════════════════════════════════════════════════════════════════

class ErrorDetail(BaseModel):
    """Error code and message."""
    code: str = Field(description="VALIDATION_ERROR, AUTH_ERROR, NOT_FOUND, SYNC_ERROR, ...")
    message: str


class ErrorResponse(BaseModel):
    """Envelope for every failed request."""
    success: bool = False
    error: ErrorDetail


# ═══════════════════════════════════════════════════════════════════════════════
# HEALTH CHECK
# ═══════════════════════════════════════════════════════════════════════════════

class DuckDBStats(BaseModel):
    """DuckDB connection status."""
    status: str
    latency_ms: Optional[float] = None
    total_queries: Optional[int] = None
    db_path: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(description="Service status: healthy or degraded")
    version: str = Field(description="Application version")
    uptime_seconds: int = Field(description="Uptime in seconds")
    correlation_id: Optional[str] = Field(None, description="Request correlation ID")
    duckdb: DuckDBStats


class TimingStats(BaseModel):
    """Timing statistics for an operation."""
    count: int
    avg_ms: float
    min_ms: float
    max_ms: float
    p50_ms: Optional[float] = None
    p95_ms: Optional[float] = None
    p99_ms: Optional[float] = None


class MetricsResponse(BaseModel):
    """Application metrics response."""
    uptime_seconds: int
    correlation_id: Optional[str] = None
    requests: Dict[str, int] = Field(default_factory=dict)
    errors: Dict[str, int] = Field(default_factory=dict)
    syncs: Dict[str, Dict[str, int]] = Field(default_factory=dict)
    timing: Dict[str, TimingStats] = Field(default_factory=dict)


# ═══════════════════════════════════════════════════════════════════════════════
# SYNC REQUESTS
# ═══════════════════════════════════════════════════════════════════════════════

class OrdersSyncRequest(BaseModel):
    """Batch of orders from the storefront."""
    orders: List[OrderPayload]


class ProductsSyncRequest(BaseModel):
    """Batch of products from the storefront."""
    products: List[ProductPayload]


class CustomersSyncRequest(BaseModel):
    """Batch of customers from the storefront."""
    customers: List[CustomerPayload]


class CategoriesSyncRequest(BaseModel):
    """Batch of categories from the storefront."""
    categories: List[CategoryPayload]


# ═══════════════════════════════════════════════════════════════════════════════
# SYNC RESPONSES
# ═══════════════════════════════════════════════════════════════════════════════

class SyncResult(BaseModel):
    """Outcome of one ingest."""
    upserted: int = Field(description="Entities inserted or updated")
    syncLogId: Optional[str] = Field(None, description="Ledger row id; null if the ledger write was dropped")


class SyncResultResponse(BaseModel):
    success: bool = True
    data: SyncResult


class SyncSummary(BaseModel):
    """Entry of the recent syncs list."""
    id: str
    syncType: str
    resource: str
    status: str = Field(description="succeeded or failed")
    recordsSynced: int
    errorMessage: Optional[str] = None
    retryCount: int = 0
    retryOf: Optional[str] = None
    startedAt: Optional[str] = None
    completedAt: Optional[str] = None
    resolvedAt: Optional[str] = None


class SyncStatusData(BaseModel):
    """Sync health of a store."""
    lastSync: Optional[str] = Field(None, description="Completion time of the last successful sync")
    lastSyncAt: Optional[str] = None
    totalOrders: int = 0
    totalProducts: int = 0
    totalCustomers: int = 0
    totalCategories: int = 0
    status: str = Field(description="never_synced, healthy or degraded")
    recordCounts: Dict[str, int] = Field(default_factory=dict)
    recentSyncs: List[SyncSummary] = Field(default_factory=list)


class SyncStatusResponse(BaseModel):
    success: bool = True
    data: SyncStatusData


class FailedSync(BaseModel):
    """Failed attempt that has not been resolved by a retry."""
    id: str
    syncType: str
    resource: str
    errorMessage: Optional[str] = None
    retryCount: int = 0
    retryOf: Optional[str] = None
    startedAt: Optional[str] = None
    completedAt: Optional[str] = None
    chainRetryCount: int = Field(0, description="Highest retry count in the retry chain")
    nextRetryAt: Optional[str] = Field(None, description="Advisory earliest retry time")
    retryable: bool = True


class FailedSyncsData(BaseModel):
    failedSyncs: List[FailedSync] = Field(default_factory=list)


class FailedSyncsResponse(BaseModel):
    success: bool = True
    data: FailedSyncsData


class RetryResult(BaseModel):
    """Outcome of a manual retry."""
    scheduled: bool
    status: str = Field(description="retry_succeeded, retry_failed or max_retries_reached")
    syncLogId: str
    retryCount: int = 0
    retryLogId: Optional[str] = None
    upserted: Optional[int] = None


class RetryResponse(BaseModel):
    success: bool = True
    data: RetryResult
