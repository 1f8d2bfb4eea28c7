"""Custom exception hierarchy for Poolwright.

All poolwright-specific exceptions inherit from PoolwrightError, enabling
callers to catch every failure of a reconciliation pass with a single
except clause.
"""

from __future__ import annotations


class PoolwrightError(Exception):
    """Base exception for all Poolwright errors."""


class ConfigurationError(PoolwrightError):
    """Raised for invalid configuration or missing required settings."""


class StoreError(PoolwrightError):
    """Raised when the resource store rejects or fails a request."""

    def __init__(self, message: str, *, status: int = 0, reason: str = "") -> None:
        self.status = status
        self.reason = reason
        super().__init__(message)


class NotFoundError(StoreError):
    """Raised when the requested object does not exist."""

    def __init__(self, kind: str, name: str) -> None:
        self.kind = kind
        self.name = name
        super().__init__(f"{kind} {name} not found", status=404, reason="NotFound")


class AlreadyExistsError(StoreError):
    """Raised when creating an object whose name is already taken."""

    def __init__(self, kind: str, name: str) -> None:
        self.kind = kind
        self.name = name
        super().__init__(f"{kind} {name} already exists", status=409, reason="AlreadyExists")


class CatalogUnavailableError(PoolwrightError):
    """Raised when the pool catalog cannot be listed - no creation is attempted."""


class CreateRejectedError(PoolwrightError):
    """Raised when the store refuses a new pool for a reason other than a name collision."""

    def __init__(self, pool_name: str, cause: StoreError) -> None:
        self.pool_name = pool_name
        self.status = cause.status
        self.reason = cause.reason
        super().__init__(f"Pool {pool_name} rejected: {cause}")
