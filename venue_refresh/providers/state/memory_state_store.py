"""In-memory state store.

Dict-backed implementation of :class:`IStateStore` with the same atomicity
guarantees as the filesystem store (every operation runs under one mutex).
Used by the test suite and for ``--dry-run`` experiments that must not
touch disk.
"""

from __future__ import annotations

import threading

from venue_refresh.interfaces.state_store import IStateStore


class MemoryStateStore(IStateStore):
    """Thread-safe dict of key -> bytes."""

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self._data: dict[str, bytes] = dict(initial or {})
        self._mutex = threading.Lock()

    # ------------------------------------------------------------------
    # IStateStore implementation
    # ------------------------------------------------------------------

    def read(self, key: str) -> bytes | None:
        with self._mutex:
            return self._data.get(key)

    def write(self, key: str, data: bytes) -> None:
        with self._mutex:
            self._data[key] = bytes(data)

    def create_exclusive(self, key: str, data: bytes) -> bool:
        with self._mutex:
            if key in self._data:
                return False
            self._data[key] = bytes(data)
            return True

    def delete(self, key: str) -> bool:
        with self._mutex:
            return self._data.pop(key, None) is not None

    def delete_if_equal(self, key: str, expected: bytes) -> bool:
        with self._mutex:
            if self._data.get(key) != expected:
                return False
            del self._data[key]
            return True

    def list_keys(self, prefix: str) -> list[str]:
        prefix = prefix.rstrip("/")
        with self._mutex:
            if not prefix:
                return sorted(self._data)
            return sorted(k for k in self._data if k.startswith(prefix + "/"))

    def get_provider_name(self) -> str:
        return "memory"

    def snapshot(self) -> dict[str, bytes]:
        """Copy of the raw contents, for test assertions."""
        with self._mutex:
            return dict(self._data)
