"""Tests for per-store publish locks."""

from __future__ import annotations

import threading

import pytest

from shopforge.core.errors import PublishInProgressError
from shopforge.publish.locks import StoreLockRegistry, get_lock_registry


class TestStoreLockRegistry:
    """Tests for StoreLockRegistry."""

    def test_acquire_release(self) -> None:
        """Test a held lock rejects a second acquire until released."""
        locks = StoreLockRegistry()
        assert locks.try_acquire("s1") is True
        assert locks.try_acquire("s1") is False
        assert locks.try_acquire("s2") is True
        assert locks.active == frozenset({"s1", "s2"})

        locks.release("s1")
        assert locks.is_held("s1") is False
        assert locks.try_acquire("s1") is True

    def test_hold_rejects_concurrent(self) -> None:
        """Test hold raises while another holder is active."""
        locks = StoreLockRegistry()
        with locks.hold("s1"):
            with pytest.raises(PublishInProgressError) as exc_info:
                with locks.hold("s1"):
                    pass
            assert exc_info.value.store_id == "s1"
        assert locks.is_held("s1") is False

    def test_hold_releases_on_error(self) -> None:
        """Test the lock is released when the block raises."""
        locks = StoreLockRegistry()
        with pytest.raises(RuntimeError):
            with locks.hold("s1"):
                raise RuntimeError("boom")
        assert locks.is_held("s1") is False

    def test_single_winner_across_threads(self) -> None:
        """Test exactly one thread acquires a contended lock."""
        locks = StoreLockRegistry()
        barrier = threading.Barrier(8)
        results: list[bool] = []
        results_lock = threading.Lock()

        def contend() -> None:
            barrier.wait()
            acquired = locks.try_acquire("s1")
            with results_lock:
                results.append(acquired)

        threads = [threading.Thread(target=contend) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(True) == 1

    def test_process_registry_singleton(self) -> None:
        """Test the process registry is shared."""
        assert get_lock_registry() is get_lock_registry()
