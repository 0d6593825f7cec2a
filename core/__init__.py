"""
Core library for the store sync engine.

This package contains the sync logic used by the web/ package:
- exceptions: Error taxonomy and Failure values
- validators: Input validation functions
- models: Resource catalogue, entity payloads and outcome types
- config: Centralized configuration
- services: Wiring of store, pipeline, ledger, router and scheduler
"""

# Import in dependency order
from core.exceptions import (
    ErrorKind,
    Failure,
    SyncEngineError,
    ValidationError,
    AuthError,
    NotFoundError,
    SyncError,
    QueryTimeoutError,
)

from core.validators import (
    validate_sync_log_id,
    validate_resource,
    validate_action,
    validate_webhook_data,
    hash_email,
)

from core.models import (
    Resource,
    SyncOutcome,
    RetryOutcome,
    StoreSyncStatus,
)

from core.config import config

__all__ = [
    # Exceptions
    "ErrorKind",
    "Failure",
    "SyncEngineError",
    "ValidationError",
    "AuthError",
    "NotFoundError",
    "SyncError",
    "QueryTimeoutError",
    # Validators
    "validate_sync_log_id",
    "validate_resource",
    "validate_action",
    "validate_webhook_data",
    "hash_email",
    # Models
    "Resource",
    "SyncOutcome",
    "RetryOutcome",
    "StoreSyncStatus",
    # Config
    "config",
]
