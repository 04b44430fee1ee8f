"""Abstract base class for provider adapters."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Tuple


class ProviderAdapter(ABC):
    """
    Collaborator interface that performs resource operations on a back-end.
    
    The engine treats providers as opaque: it never interprets attribute
    semantics beyond diffing them. Failures must be raised as ProviderError
    (set ``retryable=True`` for transient failures).
    
    Calls are made from worker threads, possibly concurrently for
    independent resources, so implementations must be thread-safe.
    """
    
    @abstractmethod
    def create(self, resource_type: str, attributes: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        """
        Create a resource.
        
        Args:
            resource_type: Declared resource type
            attributes: Fully resolved attributes
            
        Returns:
            Tuple of (provider_id, output attributes)
        """
        pass
    
    @abstractmethod
    def read(self, provider_id: str) -> Tuple[Dict[str, Any], bool]:
        """
        Read current output attributes.
        
        Returns:
            Tuple of (output attributes, exists)
        """
        pass
    
    @abstractmethod
    def update(self, provider_id: str, delta: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update a resource in place with the changed attributes only.
        
        Returns:
            New output attributes
        """
        pass
    
    @abstractmethod
    def delete(self, provider_id: str) -> None:
        """Delete a resource."""
        pass
    
    def is_ready(self, resource_type: str, outputs: Dict[str, Any]) -> bool:
        """Readiness predicate for types declaring asynchronous readiness."""
        return True
