"""Shared dependencies for API route modules."""
import logging
import time
from typing import Any, Dict

from fastapi import Request
from fastapi.responses import ORJSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import config
from core.exceptions import Failure
from core.services import Services

# Shared limiter instance
limiter = Limiter(key_func=get_remote_address, enabled=config.web.rate_limit_enabled)

# Per-route limits
WEBHOOK_LIMIT = config.web.webhook_rate_limit
BATCH_LIMIT = config.web.batch_rate_limit
READ_LIMIT = config.web.read_rate_limit
RETRY_LIMIT = config.web.retry_rate_limit


# Shared logger factory
def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


# Track startup time for uptime calculation
START_TIME = time.time()


def get_services(request: Request) -> Services:
    """Service container built in the app lifespan."""
    return request.app.state.services


def success(data: Any) -> Dict[str, Any]:
    return {"success": True, "data": data}


def failure_response(failure: Failure) -> ORJSONResponse:
    """Error envelope with the status code of the failure kind."""
    return ORJSONResponse(status_code=failure.status_code, content=failure.to_dict())
