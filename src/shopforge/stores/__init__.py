"""Store persistence used by the HTTP layer."""

from __future__ import annotations

from .models import Store
from .repository import (
    InMemoryStoreRepository,
    SQLiteStoreRepository,
    StoreNotFoundError,
    StoreRepository,
)

__all__ = [
    "InMemoryStoreRepository",
    "SQLiteStoreRepository",
    "Store",
    "StoreNotFoundError",
    "StoreRepository",
]
