"""Health check and metrics endpoints."""
import time

from fastapi import APIRouter, Request

from core.observability import get_correlation_id, metrics, Timer
from web.config import VERSION
from web.schemas import HealthResponse, MetricsResponse
from ._deps import limiter, get_logger, get_services, START_TIME

router = APIRouter()
logger = get_logger(__name__)


@router.get("/health", response_model=HealthResponse)
@limiter.limit("60/minute")
async def health_check(request: Request):
    """Health check endpoint for Docker/load balancer monitoring."""
    uptime_seconds = int(time.time() - START_TIME)
    store = get_services(request).store

    db_latency_ms = None
    try:
        with Timer("health_check_db") as timer:
            reachable = await store.ping()
        duckdb_status = "connected" if reachable else "error"
        db_latency_ms = round(timer.elapsed_ms, 2)
    except Exception as e:
        logger.warning(f"Health check database ping failed: {e}")
        duckdb_status = f"error: {e}"

    info = store.get_connection_info()
    return {
        "status": "healthy" if duckdb_status == "connected" else "degraded",
        "version": VERSION,
        "uptime_seconds": uptime_seconds,
        "correlation_id": get_correlation_id(),
        "duckdb": {
            "status": duckdb_status,
            "latency_ms": db_latency_ms,
            "total_queries": info["total_queries"],
            "db_path": info["db_path"],
        },
    }


@router.get("/metrics", response_model=MetricsResponse)
@limiter.limit("30/minute")
async def get_metrics(request: Request):
    """Request, error and sync counters plus timing percentiles."""
    return {
        "uptime_seconds": int(time.time() - START_TIME),
        "correlation_id": get_correlation_id(),
        **metrics.get_stats(),
    }
