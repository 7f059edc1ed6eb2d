"""
Store repositories.

StoreRepository is the contract the HTTP layer uses. Two implementations:
an in-memory dict for tests and single-process use, and SQLite.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

from .models import Store


class StoreNotFoundError(KeyError):
    """Raised when a store id is unknown."""

    def __init__(self, store_id: str):
        self.store_id = store_id
        super().__init__(store_id)


class StoreRepository(Protocol):
    def get(self, store_id: str) -> Store | None: ...

    def save(self, store: Store) -> Store: ...

    def update_layout(self, store_id: str, layout: Any) -> Store: ...

    def mark_published(
        self,
        store_id: str,
        *,
        url: str,
        deployment_id: str,
        published_at: datetime,
        project_name: str | None = None,
    ) -> Store: ...

    def clear_published(self, store_id: str) -> Store: ...


# =============================================================================
# In-memory
# =============================================================================


class InMemoryStoreRepository:
    """Dict-backed repository. Thread-safe."""

    def __init__(self, stores: list[Store] | None = None):
        self._lock = threading.Lock()
        self._stores: dict[str, Store] = {s.id: s for s in stores or []}

    def get(self, store_id: str) -> Store | None:
        with self._lock:
            return self._stores.get(store_id)

    def save(self, store: Store) -> Store:
        with self._lock:
            self._stores[store.id] = store
        return store

    def _update(self, store_id: str, **changes: Any) -> Store:
        with self._lock:
            store = self._stores.get(store_id)
            if store is None:
                raise StoreNotFoundError(store_id)
            updated = store.model_copy(update=changes)
            self._stores[store_id] = updated
            return updated

    def update_layout(self, store_id: str, layout: Any) -> Store:
        return self._update(store_id, layout=layout)

    def mark_published(
        self,
        store_id: str,
        *,
        url: str,
        deployment_id: str,
        published_at: datetime,
        project_name: str | None = None,
    ) -> Store:
        return self._update(
            store_id,
            published_url=url,
            deployment_id=deployment_id,
            last_published=published_at,
            project_name=project_name,
        )

    def clear_published(self, store_id: str) -> Store:
        return self._update(
            store_id, published_url=None, deployment_id=None, last_published=None
        )


# =============================================================================
# SQLite
# =============================================================================

_COLUMNS = (
    "id",
    "owner_id",
    "store_name",
    "domain",
    "custom_domain",
    "layout",
    "published_url",
    "deployment_id",
    "project_name",
    "last_published",
    "created_at",
)


def _to_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class SQLiteStoreRepository:
    """
    SQLite-backed repository.

    Connection-per-call for file databases; one persistent connection for
    ``:memory:`` so the data survives between calls.
    """

    def __init__(self, db_path: str | Path = ":memory:"):
        self._db_path = str(db_path)
        self._is_memory = self._db_path == ":memory:"
        self._memory_lock = threading.Lock()
        self._persistent_conn: sqlite3.Connection | None = None
        if self._is_memory:
            self._persistent_conn = self._create_connection()
        self._init_schema()

    def _create_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        if not self._is_memory:
            conn.execute("PRAGMA journal_mode = WAL")
        return conn

    def _execute(self, sql: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        if self._persistent_conn is not None:
            with self._memory_lock:
                with self._persistent_conn:
                    return self._persistent_conn.execute(sql, params).fetchall()
        conn = self._create_connection()
        try:
            with conn:
                return conn.execute(sql, params).fetchall()
        finally:
            conn.close()

    def _init_schema(self) -> None:
        self._execute(
            """
            CREATE TABLE IF NOT EXISTS stores (
                id TEXT PRIMARY KEY,
                owner_id TEXT NOT NULL,
                store_name TEXT NOT NULL,
                domain TEXT,
                custom_domain TEXT,
                layout TEXT,
                published_url TEXT,
                deployment_id TEXT,
                project_name TEXT,
                last_published TEXT,
                created_at TEXT
            )
            """
        )

    def _row_to_store(self, row: sqlite3.Row) -> Store:
        data = dict(row)
        data["layout"] = json.loads(data["layout"]) if data["layout"] is not None else None
        return Store.model_validate(data)

    def get(self, store_id: str) -> Store | None:
        rows = self._execute("SELECT * FROM stores WHERE id = ?", (store_id,))
        return self._row_to_store(rows[0]) if rows else None

    def save(self, store: Store) -> Store:
        created_at = store.created_at or datetime.now(UTC)
        values = (
            store.id,
            store.owner_id,
            store.store_name,
            store.domain,
            store.custom_domain,
            json.dumps(store.layout) if store.layout is not None else None,
            store.published_url,
            store.deployment_id,
            store.project_name,
            _to_iso(store.last_published),
            _to_iso(created_at),
        )
        placeholders = ", ".join("?" for _ in _COLUMNS)
        self._execute(
            f"INSERT OR REPLACE INTO stores ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
            values,
        )
        return store.model_copy(update={"created_at": created_at})

    def _update(self, store_id: str, assignments: dict[str, Any]) -> Store:
        columns = ", ".join(f"{name} = ?" for name in assignments)
        rows = self._execute(
            f"UPDATE stores SET {columns} WHERE id = ? RETURNING *",
            (*assignments.values(), store_id),
        )
        if not rows:
            raise StoreNotFoundError(store_id)
        return self._row_to_store(rows[0])

    def update_layout(self, store_id: str, layout: Any) -> Store:
        return self._update(store_id, {"layout": json.dumps(layout)})

    def mark_published(
        self,
        store_id: str,
        *,
        url: str,
        deployment_id: str,
        published_at: datetime,
        project_name: str | None = None,
    ) -> Store:
        return self._update(
            store_id,
            {
                "published_url": url,
                "deployment_id": deployment_id,
                "last_published": _to_iso(published_at),
                "project_name": project_name,
            },
        )

    def clear_published(self, store_id: str) -> Store:
        return self._update(
            store_id, {"published_url": None, "deployment_id": None, "last_published": None}
        )
