"""
FastAPI middleware for observability.

Provides:
- Request correlation ID injection
- Request/response logging
- Timing metrics
- Request timeout protection
"""
import asyncio
import time
from typing import Callable, Iterable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response, JSONResponse

from core.config import config
from core.observability import (
    get_logger,
    generate_correlation_id,
    set_correlation_id,
    get_correlation_id,
    clear_log_context,
    metrics,
)

logger = get_logger(__name__)

# Bulk sync endpoints get the extended timeout
BULK_SYNC_ENDPOINTS = {
    "/api/sync/orders",
    "/api/sync/products",
    "/api/sync/customers",
    "/api/sync/categories",
}

# Retries re-run a whole captured batch
BULK_SYNC_PREFIXES = ("/api/sync/retry/",)

UNTIMED_PATHS = ("/api/health", "/health", "/")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware that:
    1. Assigns correlation ID to each request
    2. Logs request start/end with timing
    3. Records metrics
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get("X-Request-ID") or generate_correlation_id()
        set_correlation_id(correlation_id)
        clear_log_context()

        start_time = time.perf_counter()

        method = request.method
        path = request.url.path
        client_ip = request.client.host if request.client else "unknown"

        # Skip logging for health checks to reduce noise
        is_health_check = path in ("/api/health", "/health")

        if not is_health_check:
            logger.info(
                f"Request started: {method} {path}",
                extra={
                    "method": method,
                    "path": path,
                    "client_ip": client_ip,
                }
            )

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"Request failed: {method} {path}",
                extra={
                    "method": method,
                    "path": path,
                    "duration_ms": round(duration_ms, 2),
                    "error": str(e),
                }
            )
            metrics.record_error(type(e).__name__)
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000

        response.headers["X-Request-ID"] = correlation_id
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

        if not is_health_check:
            level_name = "info" if response.status_code < 400 else "warning"
            getattr(logger, level_name)(
                f"Request completed: {method} {path}",
                extra={
                    "method": method,
                    "path": path,
                    "status_code": response.status_code,
                    "duration_ms": round(duration_ms, 2),
                }
            )

        endpoint = f"{method} {path}"
        metrics.record_request(endpoint)
        metrics.record_timing(endpoint, duration_ms)

        if response.status_code >= 400:
            metrics.record_error(f"HTTP_{response.status_code}")

        return response


class RequestTimeoutMiddleware(BaseHTTPMiddleware):
    """
    Middleware that enforces request timeout.

    Returns 504 if a request exceeds its timeout. An ingest that already
    started keeps running to completion; only the response is abandoned.
    """

    def __init__(
        self,
        app,
        default_timeout: Optional[float] = None,
        bulk_timeout: Optional[float] = None,
        bulk_endpoints: Iterable[str] = BULK_SYNC_ENDPOINTS,
    ):
        super().__init__(app)
        self.default_timeout = default_timeout or config.web.request_timeout
        self.bulk_timeout = bulk_timeout or config.web.bulk_request_timeout
        self.bulk_endpoints = set(bulk_endpoints)

    def timeout_for(self, path: str) -> float:
        if path in self.bulk_endpoints or path.startswith(BULK_SYNC_PREFIXES):
            return self.bulk_timeout
        return self.default_timeout

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path

        if path in UNTIMED_PATHS:
            return await call_next(request)

        timeout = self.timeout_for(path)

        try:
            return await asyncio.wait_for(
                call_next(request),
                timeout=timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Request timeout: {request.method} {path}",
                extra={
                    "method": request.method,
                    "path": path,
                    "timeout": timeout,
                }
            )
            metrics.record_error("REQUEST_TIMEOUT")
            return JSONResponse(
                status_code=504,
                content={
                    "success": False,
                    "error": {
                        "code": "REQUEST_TIMEOUT",
                        "message": f"Request exceeded {timeout}s timeout",
                    },
                    "correlation_id": get_correlation_id(),
                }
            )
