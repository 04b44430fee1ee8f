"""Deterministic in-memory provider for dry runs and tests."""

import json
import threading
import time
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple
from ..utils.errors import ProviderError
from ..utils.logging import get_logger
from .base import ProviderAdapter

logger = get_logger("provider.simulated")

PENDING = "pending"
READY = "ready"


class SimulatedProvider(ProviderAdapter):
    """
    Provider that keeps resources in memory.
    
    Args:
        ready_after: resource type -> number of reads that report the
            resource as pending before it reports ready
        failures: resource type -> operations ("create", "update", "delete")
            that always fail for that type
        transient_failures: resource type -> number of retryable failures
            raised by create before it succeeds
        latency: seconds each mutating call takes
        store_path: JSON file the simulated objects are kept in between
            runs (in memory only when unset)
    """
    
    def __init__(
        self,
        ready_after: Optional[Dict[str, int]] = None,
        failures: Optional[Dict[str, Iterable[str]]] = None,
        transient_failures: Optional[Dict[str, int]] = None,
        latency: float = 0.0,
        store_path: Optional[str] = None,
    ):
        self.ready_after = dict(ready_after or {})
        self.failures = {t: set(ops) for t, ops in (failures or {}).items()}
        self.transient_failures = dict(transient_failures or {})
        self.latency = latency
        self.objects: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Tuple[str, str]] = []
        self.max_in_flight = 0
        self._in_flight = 0
        self._counter = 0
        self._guard = threading.Lock()
        self.store_path = Path(store_path) if store_path else None
        if self.store_path and self.store_path.exists():
            self._load()
    
    def _load(self) -> None:
        try:
            with open(self.store_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ProviderError(f"Cannot read simulated provider store {self.store_path}: {e}")
        self.objects = data.get("objects", {})
        self._counter = data.get("counter", 0)
    
    def _persist(self) -> None:
        """Write objects to the store file; caller holds the guard."""
        if self.store_path is None:
            return
        self.store_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.store_path, "w", encoding="utf-8") as f:
            json.dump({"counter": self._counter, "objects": self.objects}, f, indent=2, sort_keys=True)
    
    def _enter(self, operation: str, subject: str) -> None:
        with self._guard:
            self.calls.append((operation, subject))
            self._in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self._in_flight)
        if self.latency:
            time.sleep(self.latency)
    
    def _exit(self) -> None:
        with self._guard:
            self._in_flight -= 1
    
    def _check_failure(self, operation: str, resource_type: str) -> None:
        if operation in self.failures.get(resource_type, set()):
            raise ProviderError(f"simulated {operation} failure for {resource_type}")
        if operation == "create":
            with self._guard:
                remaining = self.transient_failures.get(resource_type, 0)
                if remaining > 0:
                    self.transient_failures[resource_type] = remaining - 1
                    raise ProviderError(f"simulated throttling for {resource_type}", retryable=True)
    
    def _outputs(self, provider_id: str) -> Dict[str, Any]:
        obj = self.objects[provider_id]
        outputs = dict(obj["attributes"])
        outputs["id"] = provider_id
        outputs["arn"] = f"sim:{obj['type']}:{provider_id}"
        if obj["type"] in self.ready_after:
            outputs["status"] = READY if obj["reads"] > self.ready_after[obj["type"]] else PENDING
        return outputs
    
    def create(self, resource_type: str, attributes: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        self._enter("create", resource_type)
        try:
            self._check_failure("create", resource_type)
            with self._guard:
                self._counter += 1
                provider_id = f"{resource_type}-{self._counter:04d}"
                self.objects[provider_id] = {"type": resource_type, "attributes": dict(attributes), "reads": 0}
                self._persist()
                outputs = self._outputs(provider_id)
            logger.debug(f"Created {provider_id}")
            return provider_id, outputs
        finally:
            self._exit()
    
    def read(self, provider_id: str) -> Tuple[Dict[str, Any], bool]:
        with self._guard:
            self.calls.append(("read", provider_id))
            if provider_id not in self.objects:
                return {}, False
            self.objects[provider_id]["reads"] += 1
            return self._outputs(provider_id), True
    
    def update(self, provider_id: str, delta: Dict[str, Any]) -> Dict[str, Any]:
        self._enter("update", provider_id)
        try:
            obj = self.objects.get(provider_id)
            if obj is None:
                raise ProviderError(f"{provider_id} does not exist")
            self._check_failure("update", obj["type"])
            with self._guard:
                for key, value in delta.items():
                    if value is None:
                        obj["attributes"].pop(key, None)
                    else:
                        obj["attributes"][key] = value
                self._persist()
                return self._outputs(provider_id)
        finally:
            self._exit()
    
    def delete(self, provider_id: str) -> None:
        self._enter("delete", provider_id)
        try:
            obj = self.objects.get(provider_id)
            if obj is None:
                raise ProviderError(f"{provider_id} does not exist")
            self._check_failure("delete", obj["type"])
            with self._guard:
                del self.objects[provider_id]
                self._persist()
            logger.debug(f"Deleted {provider_id}")
        finally:
            self._exit()
    
    def is_ready(self, resource_type: str, outputs: Dict[str, Any]) -> bool:
        if resource_type not in self.ready_after:
            return True
        return outputs.get("status") == READY
    
    def mutating_calls(self) -> List[Tuple[str, str]]:
        """Recorded create/update/delete calls in order."""
        return [c for c in self.calls if c[0] != "read"]
