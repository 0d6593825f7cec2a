"""
Error taxonomy for the sync engine.

Exception Hierarchy:
    SyncEngineError (base)
    ├── ValidationError   - Input validation failed (400)
    ├── AuthError         - Missing/invalid store credentials (401)
    ├── NotFoundError     - Referenced row missing or owned by another store (404)
    ├── SyncError         - Storage failure while upserting a batch (500)
    └── QueryTimeoutError - Database query exceeded timeout (500)

Core components catch these at their boundary and hand back a ``Failure``
value instead of letting the exception unwind into the HTTP layer.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Discriminator for failures returned by pipeline, ledger and scheduler."""

    VALIDATION = "validation"
    AUTH = "auth"
    NOT_FOUND = "not_found"
    SYNC = "sync"
    INTERNAL = "internal"

    @property
    def status_code(self) -> int:
        return {
            ErrorKind.VALIDATION: 400,
            ErrorKind.AUTH: 401,
            ErrorKind.NOT_FOUND: 404,
            ErrorKind.SYNC: 500,
            ErrorKind.INTERNAL: 500,
        }[self]

    @property
    def code(self) -> str:
        return {
            ErrorKind.VALIDATION: "VALIDATION_ERROR",
            ErrorKind.AUTH: "AUTH_ERROR",
            ErrorKind.NOT_FOUND: "NOT_FOUND",
            ErrorKind.SYNC: "SYNC_ERROR",
            ErrorKind.INTERNAL: "INTERNAL_ERROR",
        }[self]


@dataclass(frozen=True)
class Failure:
    """An error outcome carried as a value."""

    kind: ErrorKind
    message: str
    field: Optional[str] = None
    details: Optional[str] = None  # logged and recorded, never sent to clients

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    @property
    def description(self) -> str:
        """Message with details, as recorded in the ledger."""
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Error envelope sent to API clients."""
        return {
            "success": False,
            "error": {
                "code": self.kind.code,
                "message": self.message,
            },
        }


class SyncEngineError(Exception):
    """Base exception for all sync engine errors."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, details: str = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message

    def to_failure(self) -> Failure:
        return Failure(kind=self.kind, message=self.message)


class ValidationError(SyncEngineError):
    """
    Input validation failed.

    Raised by validators before any storage access.
    """

    kind = ErrorKind.VALIDATION

    def __init__(self, field: str, message: str, value: Any = None):
        self.field = field
        self.value = value
        super().__init__(message)

    def __str__(self) -> str:
        if self.value is not None:
            return f"{self.field}: {self.message} (got: {self.value!r})"
        return f"{self.field}: {self.message}"

    def to_failure(self) -> Failure:
        return Failure(kind=self.kind, message=f"{self.field}: {self.message}", field=self.field)


class AuthError(SyncEngineError):
    """Store credentials missing, malformed or rejected."""

    kind = ErrorKind.AUTH

    def __init__(self, message: str = "Unauthorized", details: str = None):
        super().__init__(message, details)


class NotFoundError(SyncEngineError):
    """
    Referenced resource does not exist for the calling store.

    Rows owned by another store are reported exactly like missing rows.
    """

    kind = ErrorKind.NOT_FOUND

    def __init__(self, message: str = "Resource not found", details: str = None):
        super().__init__(message, details)


class SyncError(SyncEngineError):
    """
    Storage or unexpected failure while upserting a batch.

    The whole batch has been rolled back when this is raised.
    """

    kind = ErrorKind.SYNC

    def to_failure(self) -> Failure:
        # Details reach the ledger and logs, never the client envelope
        return Failure(kind=self.kind, message=self.message, details=self.details)


class QueryTimeoutError(SyncEngineError):
    """
    Database query exceeded timeout.

    Indicates a long-running query that should be investigated:
    - Missing index
    - Too much data being scanned
    """

    kind = ErrorKind.INTERNAL

    def __init__(self, query: str, timeout: float, details: str = None):
        self.query = query[:200] + "..." if len(query) > 200 else query
        self.timeout = timeout
        message = f"Query timed out after {timeout}s"
        super().__init__(message, details)

    def __str__(self) -> str:
        return f"QueryTimeoutError: Query timed out after {self.timeout}s - {self.query}"
