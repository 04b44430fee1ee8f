"""Per-type replace policy: which attribute changes force a replacement."""

from typing import Dict, Iterable, List, Optional, Set
from ..utils.logging import get_logger

logger = get_logger("planner.policy")

ANY_TYPE = "*"


class ReplacePolicy:
    """Lookup table of attributes that are immutable after creation, per resource type."""
    
    def __init__(self, immutable: Optional[Dict[str, Iterable[str]]] = None):
        self._immutable: Dict[str, Set[str]] = {}
        for resource_type, attributes in (immutable or {}).items():
            self._immutable[resource_type] = set(attributes or [])
    
    def immutable_attributes(self, resource_type: str) -> Set[str]:
        """Immutable attributes for a type, including those declared for every type."""
        return self._immutable.get(resource_type, set()) | self._immutable.get(ANY_TYPE, set())
    
    def immutable_changes(self, resource_type: str, changed: Iterable[str]) -> List[str]:
        """Changed attributes that cannot be updated in place."""
        immutable = self.immutable_attributes(resource_type)
        return sorted(a for a in changed if a in immutable)
    
    def requires_replace(self, resource_type: str, changed: Iterable[str]) -> bool:
        return bool(self.immutable_changes(resource_type, changed))
    
    def to_dict(self) -> Dict[str, List[str]]:
        return {t: sorted(attrs) for t, attrs in sorted(self._immutable.items())}
    
    def __repr__(self) -> str:
        return f"ReplacePolicy({self.to_dict()})"
