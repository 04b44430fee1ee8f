"""State store: persisted last-applied resource state and the apply lock."""

from .store import StateStore, MemoryStateStore
from .file_store import FileStateStore, STATE_VERSION
from .lock import StateLock
from .refresh import refresh_state

__all__ = ["StateStore", "MemoryStateStore", "FileStateStore", "StateLock", "STATE_VERSION", "refresh_state"]
