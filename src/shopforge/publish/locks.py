"""
Per-store publish locks.

A second publish for a store that is already publishing is rejected, not
queued. The registry is process-local; a multi-process deployment needs an
external lock instead.

Usage::

    with get_lock_registry().hold(store_id):
        ...
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from shopforge.core.errors import PublishInProgressError

logger = logging.getLogger(__name__)


class StoreLockRegistry:
    """Set of store ids with a publish in flight, guarded by a thread lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._held: set[str] = set()

    def try_acquire(self, store_id: str) -> bool:
        with self._lock:
            if store_id in self._held:
                return False
            self._held.add(store_id)
        logger.debug("Publish lock acquired for store %s", store_id)
        return True

    def release(self, store_id: str) -> None:
        with self._lock:
            self._held.discard(store_id)
        logger.debug("Publish lock released for store %s", store_id)

    def is_held(self, store_id: str) -> bool:
        with self._lock:
            return store_id in self._held

    @property
    def active(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._held)

    @contextmanager
    def hold(self, store_id: str) -> Iterator[None]:
        """
        Hold the store's lock for the duration of the block.

        Raises:
            PublishInProgressError: another publish holds the lock
        """
        if not self.try_acquire(store_id):
            raise PublishInProgressError(store_id)
        try:
            yield
        finally:
            self.release(store_id)


_registry: StoreLockRegistry | None = None
_registry_lock = threading.Lock()


def get_lock_registry() -> StoreLockRegistry:
    """Process-wide registry, created on first use."""
    global _registry
    with _registry_lock:
        if _registry is None:
            _registry = StoreLockRegistry()
        return _registry
