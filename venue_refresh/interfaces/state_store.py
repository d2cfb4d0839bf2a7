"""Abstract base class for the pipeline's durable key-value state.

Snapshots, the generation marker, the pipeline lock, negative-result
memos and the last-run record all live behind this interface.  Keys are
``/``-separated relative paths (``snapshots/current/<id>.json``).

Two primitives carry the concurrency guarantees the pipeline relies on:

- :meth:`IStateStore.create_exclusive` -- atomic check-and-create; exactly
  one of several racing callers wins.
- :meth:`IStateStore.delete_if_equal` -- compare-and-delete; removes a key
  only if its bytes are unchanged since the caller read them.

:meth:`IStateStore.write` is atomic from a reader's point of view: a reader
sees either the old bytes or the new bytes, never a torn write.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: FileStateStore, MemoryStateStore
# Located in: venue_refresh/providers/state/
class IStateStore(ABC):
    """Contract for the snapshot / lock / marker storage backend."""

    @abstractmethod
    def read(self, key: str) -> bytes | None:
        """Return the stored bytes for *key*, or ``None`` if absent."""

    @abstractmethod
    def write(self, key: str, data: bytes) -> None:
        """Atomically create or replace *key*."""

    @abstractmethod
    def create_exclusive(self, key: str, data: bytes) -> bool:
        """Create *key* only if it does not exist.

        Returns
        -------
        bool
            ``True`` if this call created the key; ``False`` if it already
            existed (nothing is written in that case).
        """

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete *key*.  Returns ``True`` if it existed."""

    @abstractmethod
    def delete_if_equal(self, key: str, expected: bytes) -> bool:
        """Delete *key* only if its current bytes equal *expected*.

        Returns ``True`` if the key was deleted by this call.
        """

    @abstractmethod
    def list_keys(self, prefix: str) -> list[str]:
        """Return all keys directly or indirectly under *prefix*, sorted."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this backend."""
