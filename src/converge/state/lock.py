"""Exclusive lock file guarding a state file."""

import json
import os
import socket
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional
from ..utils.errors import ConflictError, StateError
from ..utils.logging import get_logger

logger = get_logger("state.lock")


class StateLock:
    """
    Lock file next to the state file, created with O_CREAT | O_EXCL.
    
    A held lock fails fast with ConflictError unless ``timeout`` is
    positive, in which case acquisition is retried every ``poll_interval``
    seconds until the timeout elapses.
    """
    
    def __init__(self, state_path: Path, timeout: float = 0.0, poll_interval: float = 0.5):
        self.path = Path(str(state_path) + ".lock")
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.lock_id: Optional[str] = None
    
    def read_info(self) -> Optional[Dict[str, Any]]:
        """Lock holder information, or None if the lock is free."""
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError):
            return {"id": "unknown"}
    
    def acquire(self, operation: str = "apply") -> None:
        """
        Acquire the lock.
        
        Raises:
            ConflictError: If the lock is held and the timeout elapsed
            StateError: If the lock file cannot be created
        """
        deadline = time.monotonic() + self.timeout
        info = {
            "id": str(uuid.uuid4()),
            "operation": operation,
            "pid": os.getpid(),
            "host": socket.gethostname(),
            "created": datetime.now(timezone.utc).isoformat(),
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        
        while True:
            try:
                fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                if time.monotonic() >= deadline:
                    holder = self.read_info() or {}
                    raise ConflictError(
                        f"State is locked (lock {holder.get('id')}, {holder.get('operation', 'unknown')} "
                        f"by pid {holder.get('pid', '?')} on {holder.get('host', '?')} since {holder.get('created', '?')}). "
                        "If no other run is active, remove it with: converge state unlock"
                    )
                logger.debug(f"State lock held, retrying in {self.poll_interval}s")
                time.sleep(self.poll_interval)
                continue
            except OSError as e:
                raise StateError(f"Failed to create lock file {self.path}: {e}")
            
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(info, f)
            self.lock_id = info["id"]
            logger.debug(f"Acquired state lock {self.lock_id} for {operation}")
            return
    
    def release(self) -> None:
        """Release the lock if this instance holds it."""
        if self.lock_id is None:
            return
        holder = self.read_info()
        if holder and holder.get("id") != self.lock_id:
            logger.warning(f"Lock file {self.path} is held by {holder.get('id')}, not releasing")
        else:
            try:
                self.path.unlink()
            except FileNotFoundError:
                pass
        logger.debug(f"Released state lock {self.lock_id}")
        self.lock_id = None
    
    def force_release(self) -> bool:
        """Remove the lock file regardless of holder."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        self.lock_id = None
        logger.warning(f"Force-removed state lock {self.path}")
        return True
