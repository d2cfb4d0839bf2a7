"""State store backends: FileStateStore (production) and MemoryStateStore (tests)."""

from venue_refresh.providers.state.file_state_store import FileStateStore
from venue_refresh.providers.state.memory_state_store import MemoryStateStore

__all__ = ["FileStateStore", "MemoryStateStore"]
