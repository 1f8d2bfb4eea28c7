"""Core primitives shared by every layer."""

from .exceptions import (
    AlreadyExistsError,
    CatalogUnavailableError,
    ConfigurationError,
    CreateRejectedError,
    NotFoundError,
    PoolwrightError,
    StoreError,
)

__all__ = [
    "AlreadyExistsError",
    "CatalogUnavailableError",
    "ConfigurationError",
    "CreateRejectedError",
    "NotFoundError",
    "PoolwrightError",
    "StoreError",
]
