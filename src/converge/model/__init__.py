"""Resource model: declared resources, references and state records."""

from .models import Reference, Resource, ResourceStatus, StateRecord
from .loader import load_declarations, parse_declarations

__all__ = [
    "Reference",
    "Resource",
    "ResourceStatus",
    "StateRecord",
    "load_declarations",
    "parse_declarations",
]
