"""State store interface and in-memory implementation."""

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Iterator, Optional
from ..model.models import StateRecord
from ..utils.errors import ConflictError
from ..utils.logging import get_logger

logger = get_logger("state.store")


class StateStore(ABC):
    """
    Owner of persisted StateRecords.
    
    Records are written one at a time so that an interrupted apply leaves
    state consistent with every operation that actually completed. Only the
    holder of the apply lock may write.
    """
    
    @abstractmethod
    def load(self) -> Dict[str, StateRecord]:
        """Return all records keyed by resource id."""
        pass
    
    @abstractmethod
    def save(self, record: StateRecord) -> None:
        """Persist (insert or replace) a single record."""
        pass
    
    @abstractmethod
    def remove(self, resource_id: str) -> None:
        """Remove the record of a resource (no-op if absent)."""
        pass
    
    @abstractmethod
    def acquire_lock(self, operation: str = "apply") -> None:
        """
        Take the exclusive apply lock.
        
        Raises:
            ConflictError: If another run holds the lock
        """
        pass
    
    @abstractmethod
    def release_lock(self) -> None:
        """Release the apply lock held by this store."""
        pass
    
    @abstractmethod
    def force_unlock(self) -> bool:
        """Break a lock left behind by a crashed run. Returns True if a lock was removed."""
        pass
    
    def get(self, resource_id: str) -> Optional[StateRecord]:
        return self.load().get(resource_id)
    
    @contextmanager
    def lock(self, operation: str = "apply") -> Iterator["StateStore"]:
        """Hold the apply lock for the duration of the block, releasing it on every exit path."""
        self.acquire_lock(operation)
        try:
            yield self
        finally:
            self.release_lock()


class MemoryStateStore(StateStore):
    """State store kept in process memory."""
    
    def __init__(self, records: Optional[Dict[str, StateRecord]] = None):
        self._records: Dict[str, StateRecord] = {}
        for record in (records or {}).values():
            self._records[record.id] = record.model_copy(deep=True)
        self._lock = threading.Lock()
        self._guard = threading.Lock()
        self.save_count = 0
    
    def load(self) -> Dict[str, StateRecord]:
        with self._guard:
            return {k: v.model_copy(deep=True) for k, v in self._records.items()}
    
    def save(self, record: StateRecord) -> None:
        with self._guard:
            self._records[record.id] = record.model_copy(deep=True)
            self.save_count += 1
        logger.debug(f"Saved state for '{record.id}' ({record.status.value})")
    
    def remove(self, resource_id: str) -> None:
        with self._guard:
            self._records.pop(resource_id, None)
        logger.debug(f"Removed state for '{resource_id}'")
    
    def acquire_lock(self, operation: str = "apply") -> None:
        if not self._lock.acquire(blocking=False):
            raise ConflictError("State is locked by another run")
        logger.debug(f"Acquired in-memory state lock for {operation}")
    
    def release_lock(self) -> None:
        if self._lock.locked():
            self._lock.release()
    
    def force_unlock(self) -> bool:
        if self._lock.locked():
            self._lock.release()
            return True
        return False
    
    @property
    def locked(self) -> bool:
        return self._lock.locked()
