"""
FastAPI web application for the store sync engine.
"""
from contextlib import asynccontextmanager
from typing import Optional, Sequence, Union

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.gzip import GZipMiddleware

from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from core.config import AppConfig, ConfigurationError, config, validate_config
from core.events import EventBus, SyncEvent
from core.exceptions import ErrorKind, Failure, SyncEngineError
from core.observability import setup_logging, get_logger, metrics
from core.services import Services
from web.config import VERSION
from web.middleware import RequestLoggingMiddleware, RequestTimeoutMiddleware
from web.routes import api
from web.routes.api._deps import limiter, failure_response

# Configure structured logging
# Use JSON format in production (LOG_FORMAT=json), human-readable otherwise
setup_logging(level=config.logging.level, json_format=config.logging.json_format)
logger = get_logger(__name__)

HTTP_ERROR_CODES = {
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


def _validation_field(loc: Sequence[Union[str, int]]) -> str:
    parts = [part for part in loc if part != "body"]
    if not parts:
        return "body"
    path = str(parts[0])
    for part in parts[1:]:
        path += f"[{part}]" if isinstance(part, int) else f".{part}"
    return path


def _register_event_handlers(events: EventBus) -> None:
    """Register handlers for sync events."""

    @events.on(SyncEvent.SYNC_FAILED)
    async def on_sync_failed(data: dict):
        logger.warning(
            f"Sync failed: {data.get('sync_type')}",
            extra={
                "store_id": data.get("store_id"),
                "sync_log_id": data.get("sync_log_id"),
                "error": data.get("error"),
            },
        )

    @events.on(SyncEvent.RETRY_SCHEDULED)
    async def on_retry(data: dict):
        logger.info(
            f"Retry {'succeeded' if data.get('succeeded') else 'failed'} "
            f"for {data.get('sync_log_id')}",
            extra={
                "store_id": data.get("store_id"),
                "retry_log_id": data.get("retry_log_id"),
                "retry_count": data.get("retry_count"),
            },
        )


def create_app(
    app_config: Optional[AppConfig] = None,
    services: Optional[Services] = None,
) -> FastAPI:
    """
    Build the API application.

    Args:
        app_config: Configuration; defaults to the environment config
        services: Prebuilt service container. When omitted one is built
            in the lifespan and closed on shutdown.
    """
    cfg = app_config or config

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Store sync engine starting...")

        # Validate configuration early - fail fast with clear errors
        try:
            validate_config(cfg)
        except ConfigurationError as e:
            logger.critical(f"Configuration error: {e}")
            raise

        owned = services is None
        container = services or Services.build(cfg)
        await container.start()
        _register_event_handlers(container.events)
        app.state.services = container
        logger.info(f"DuckDB ready: {container.store.db_path}")

        yield

        if owned:
            await container.close()
        logger.info("Store sync engine stopped")

    app = FastAPI(
        title="Store Sync Engine",
        description="Webhook and batch ingestion of storefront data with a sync ledger",
        version=VERSION,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    # Add rate limiter to app state
    limiter.enabled = cfg.web.rate_limit_enabled
    app.state.limiter = limiter

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        logger.warning(f"Rate limit exceeded for {get_remote_address(request)}")
        return ORJSONResponse(
            status_code=429,
            content={
                "success": False,
                "error": {
                    "code": "RATE_LIMIT_ERROR",
                    "message": "Too many requests. Please try again later.",
                },
            },
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if errors:
            error = errors[0]
            message = f"{_validation_field(error.get('loc', ()))}: {error.get('msg')}"
        else:
            message = "Invalid request"
        metrics.record_error("validation")
        return failure_response(Failure(ErrorKind.VALIDATION, message))

    @app.exception_handler(SyncEngineError)
    async def sync_engine_error_handler(request: Request, exc: SyncEngineError):
        if exc.kind == ErrorKind.AUTH:
            logger.info(f"Rejected credentials: {exc.message}")
        return failure_response(exc.to_failure())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "error": {
                    "code": HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
                    "message": str(exc.detail),
                },
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error: {exc}", exc_info=True)
        return failure_response(Failure(ErrorKind.INTERNAL, "Internal server error"))

    # Add request logging middleware (adds correlation IDs and timing)
    app.add_middleware(RequestLoggingMiddleware)

    # Add request timeout middleware (prevents long-running requests)
    # Must be AFTER logging so correlation_id is set when timeout fires
    app.add_middleware(
        RequestTimeoutMiddleware,
        default_timeout=cfg.web.request_timeout,
        bulk_timeout=cfg.web.bulk_request_timeout,
    )

    # Add Gzip compression (min 500 bytes to compress)
    app.add_middleware(GZipMiddleware, minimum_size=500)

    app.include_router(api.router, prefix="/api")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.web.host, port=config.web.port)
