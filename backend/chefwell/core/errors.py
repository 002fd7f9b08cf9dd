"""
Error taxonomy shared by the tenant, cache, tab and scheduler layers.

Request-visible errors carry an HTTP status and a stable machine code so the
API layer can turn them into responses without knowing where they came from.
"""
from typing import Optional


class ChefwellError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class InvalidNamespace(ChefwellError):
    """Malformed or reserved tenant namespace. Never corrected silently."""

    status_code = 403
    code = "INVALID_TENANT_SCHEMA"

    def __init__(self, reason: str):
        super().__init__(f"Invalid tenant namespace: {reason}")
        self.reason = reason


class InactiveTenant(ChefwellError):
    status_code = 403
    code = "TENANT_INACTIVE"


class NotFoundError(ChefwellError):
    status_code = 404
    code = "NOT_FOUND"


class ValidationError(ChefwellError):
    status_code = 400
    code = "VALIDATION_ERROR"


class StorageError(ChefwellError):
    status_code = 500
    code = "STORAGE_ERROR"


class TransientCacheError(ChefwellError):
    """Raised and recovered inside the cache layer only."""

    code = "CACHE_UNAVAILABLE"


class FatalStartupError(ChefwellError):
    code = "FATAL_STARTUP"


class InvalidStateError(NotFoundError, ValidationError):
    """Entity exists but is not in the state the operation needs (e.g. tab already closed)."""

    status_code = 409
    code = "INVALID_STATE"
