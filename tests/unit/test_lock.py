"""Unit tests for the cross-process pipeline lock."""

from __future__ import annotations

import os
import threading
from pathlib import Path
from unittest.mock import patch

from conftest import FakeClock

from venue_refresh.pipeline.lock import PipelineLock, default_holder_name
from venue_refresh.providers.state.file_state_store import FileStateStore
from venue_refresh.providers.state.memory_state_store import MemoryStateStore

_NAME = "venue-refresh"
_KEY = f"locks/{_NAME}.json"


def _pair(store: MemoryStateStore, clock: FakeClock) -> tuple[PipelineLock, PipelineLock]:
    return (
        PipelineLock(store, clock, holder="host-a:1"),
        PipelineLock(store, clock, holder="host-b:2"),
    )


# ======================================================================
# Acquire / contention
# ======================================================================


class TestAcquire:
    def test_free_lock_is_acquired(self, store: MemoryStateStore, clock: FakeClock) -> None:
        lock = PipelineLock(store, clock, holder="host-a:1")
        result = lock.acquire(_NAME)
        assert result.acquired is True
        assert result.record.holder == "host-a:1"
        assert lock.is_held(_NAME)
        assert lock.holder(_NAME).token == result.record.token

    def test_fresh_lock_is_refused_with_holder(self, store: MemoryStateStore, clock: FakeClock) -> None:
        first, second = _pair(store, clock)
        first.acquire(_NAME)
        clock.advance(10 * 60)

        result = second.acquire(_NAME)

        assert result.acquired is False
        assert result.holder.holder == "host-a:1"
        assert result.age_seconds == 600
        assert not second.is_held(_NAME)

    def test_stale_lock_is_reclaimed(self, store: MemoryStateStore, clock: FakeClock) -> None:
        first, second = _pair(store, clock)
        first.acquire(_NAME)
        clock.advance(3 * 60 * 60 + 1)

        result = second.acquire(_NAME)

        assert result.acquired is True
        assert result.reclaimed_stale is True
        assert result.holder.holder == "host-a:1"
        assert second.holder(_NAME).holder == "host-b:2"

    def test_corrupt_lock_is_reclaimed(self, store: MemoryStateStore, clock: FakeClock) -> None:
        store.write(_KEY, b"\x00garbage")
        lock = PipelineLock(store, clock, holder="host-a:1")
        result = lock.acquire(_NAME)
        assert result.acquired is True
        assert result.reclaimed_stale is True
        assert result.holder is None

    def test_custom_stale_threshold(self, store: MemoryStateStore, clock: FakeClock) -> None:
        PipelineLock(store, clock, holder="host-a:1").acquire(_NAME)
        clock.advance(61)
        assert PipelineLock(store, clock, stale_after_seconds=60, holder="b").acquire(_NAME).acquired

    def test_reclaim_race_reports_contention(self, store: MemoryStateStore, clock: FakeClock) -> None:
        first, second = _pair(store, clock)
        first.acquire(_NAME)
        clock.advance(4 * 60 * 60)

        with patch.object(store, "delete_if_equal", return_value=False):
            result = second.acquire(_NAME)

        assert result.acquired is False
        assert not second.is_held(_NAME)

    def test_names_are_independent(self, store: MemoryStateStore, clock: FakeClock) -> None:
        first, second = _pair(store, clock)
        assert first.acquire("alpha").acquired
        assert second.acquire("beta").acquired


class TestConcurrentAcquire:
    def test_racing_threads_elect_one_holder(self, tmp_path: Path, clock: FakeClock) -> None:
        store = FileStateStore(tmp_path)
        contenders = 8
        barrier = threading.Barrier(contenders)
        outcomes: list[bool] = []
        outcomes_mutex = threading.Lock()

        def contend(index: int) -> None:
            lock = PipelineLock(store, clock, holder=f"worker:{index}")
            barrier.wait()
            acquired = lock.acquire(_NAME).acquired
            with outcomes_mutex:
                outcomes.append(acquired)

        for _round in range(10):
            outcomes.clear()
            store.delete(_KEY)
            threads = [threading.Thread(target=contend, args=(i,)) for i in range(contenders)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join(timeout=10)
            assert outcomes.count(True) == 1
            assert len(outcomes) == contenders


# ======================================================================
# Refresh / release
# ======================================================================


class TestRefreshRelease:
    def test_refresh_keeps_long_run_fresh(self, store: MemoryStateStore, clock: FakeClock) -> None:
        first, second = _pair(store, clock)
        first.acquire(_NAME)
        for _ in range(4):
            clock.advance(2 * 60 * 60)
            assert first.refresh(_NAME) is True
        assert second.acquire(_NAME).acquired is False

    def test_refresh_detects_lost_lock(self, store: MemoryStateStore, clock: FakeClock) -> None:
        first, second = _pair(store, clock)
        first.acquire(_NAME)
        clock.advance(4 * 60 * 60)
        second.acquire(_NAME)

        assert first.refresh(_NAME) is False
        assert not first.is_held(_NAME)

    def test_refresh_without_lock(self, store: MemoryStateStore, clock: FakeClock) -> None:
        assert PipelineLock(store, clock).refresh(_NAME) is False

    def test_release_removes_own_record(self, store: MemoryStateStore, clock: FakeClock) -> None:
        lock = PipelineLock(store, clock, holder="host-a:1")
        lock.acquire(_NAME)
        assert lock.release(_NAME) is True
        assert store.read(_KEY) is None
        assert lock.acquire(_NAME).acquired

    def test_release_after_refresh(self, store: MemoryStateStore, clock: FakeClock) -> None:
        lock = PipelineLock(store, clock, holder="host-a:1")
        lock.acquire(_NAME)
        clock.advance(30)
        lock.refresh(_NAME)
        assert lock.release(_NAME) is True

    def test_release_leaves_foreign_record(self, store: MemoryStateStore, clock: FakeClock) -> None:
        first, second = _pair(store, clock)
        first.acquire(_NAME)
        clock.advance(4 * 60 * 60)
        second.acquire(_NAME)

        assert first.release(_NAME) is False
        assert second.holder(_NAME).holder == "host-b:2"

    def test_release_without_lock(self, store: MemoryStateStore, clock: FakeClock) -> None:
        assert PipelineLock(store, clock).release(_NAME) is False


def test_default_holder_name_includes_pid() -> None:
    assert default_holder_name().endswith(f":{os.getpid()}")
