"""JSON file state store with versioned layout and atomic writes."""

import json
import os
import tempfile
import uuid
from pathlib import Path
from typing import Any, Dict
from pydantic import ValidationError as PydanticValidationError
from ..model.models import StateRecord
from ..utils.errors import StateError
from ..utils.logging import get_logger
from .lock import StateLock
from .store import StateStore

logger = get_logger("state.file_store")

STATE_VERSION = 1


def _migrate(document: Dict[str, Any]) -> Dict[str, Any]:
    """Bring an older state document up to STATE_VERSION."""
    version = document.get("version")
    if version is None:
        # Unversioned documents are a bare id -> record mapping.
        return {"version": STATE_VERSION, "serial": 0, "lineage": str(uuid.uuid4()), "resources": document}
    if not isinstance(version, int):
        raise StateError(f"State 'version' must be an integer, got {version!r}")
    if version > STATE_VERSION:
        raise StateError(
            f"State file version {version} is newer than supported version {STATE_VERSION}. "
            "Please upgrade converge."
        )
    return document


class FileStateStore(StateStore):
    """
    State persisted as a single JSON document:
    ``{"version": 1, "serial": n, "lineage": uuid, "resources": {id: record}}``.
    """
    
    def __init__(self, path: str, lock_timeout: float = 0.0, lock_poll_interval: float = 0.5):
        self.path = Path(path)
        self._lock = StateLock(self.path, timeout=lock_timeout, poll_interval=lock_poll_interval)
    
    def _read_document(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {"version": STATE_VERSION, "serial": 0, "lineage": str(uuid.uuid4()), "resources": {}}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                document = json.load(f)
        except json.JSONDecodeError as e:
            raise StateError(f"Invalid JSON in state file {self.path}: {e}")
        except OSError as e:
            raise StateError(f"Error reading state file {self.path}: {e}")
        
        if not isinstance(document, dict):
            raise StateError(f"State file {self.path} must contain a mapping")
        document = _migrate(document)
        if not isinstance(document.get("resources", {}), dict):
            raise StateError(f"State file {self.path}: 'resources' must be a mapping")
        document.setdefault("resources", {})
        return document
    
    def _write_document(self, document: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(document, f, indent=2, sort_keys=True)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise StateError(f"Failed to write state file {self.path}: {e}")
    
    def load(self) -> Dict[str, StateRecord]:
        document = self._read_document()
        records = {}
        for resource_id, data in document["resources"].items():
            try:
                records[resource_id] = StateRecord(**data)
            except (PydanticValidationError, TypeError) as e:
                raise StateError(f"Invalid state record '{resource_id}': {e}")
        logger.debug(f"Loaded {len(records)} state records from {self.path}")
        return records
    
    def save(self, record: StateRecord) -> None:
        document = self._read_document()
        document["resources"][record.id] = record.model_dump(mode="json")
        document["serial"] = document.get("serial", 0) + 1
        self._write_document(document)
        logger.debug(f"Saved state for '{record.id}' ({record.status.value}), serial {document['serial']}")
    
    def remove(self, resource_id: str) -> None:
        document = self._read_document()
        if document["resources"].pop(resource_id, None) is None:
            return
        document["serial"] = document.get("serial", 0) + 1
        self._write_document(document)
        logger.debug(f"Removed state for '{resource_id}', serial {document['serial']}")
    
    def serial(self) -> int:
        return self._read_document().get("serial", 0)
    
    def acquire_lock(self, operation: str = "apply") -> None:
        self._lock.acquire(operation)
    
    def release_lock(self) -> None:
        self._lock.release()
    
    def force_unlock(self) -> bool:
        return self._lock.force_release()
    
    def lock_info(self):
        return self._lock.read_info()
