"""Reference parsing, canonical encoding and scanning."""

import re
from typing import Any, Iterator, Optional
from .models import Reference

PLACEHOLDER_PATTERN = re.compile(r"^\$\{([A-Za-z_][A-Za-z0-9_-]*)\.([A-Za-z0-9_.\-\[\]]+)\}$")
EMBEDDED_PATTERN = re.compile(r"\$\{[^}]*\}")
CANONICAL_KEY = "$ref"


def parse_reference(value: Any) -> Optional[Reference]:
    """
    Interpret a declared value as a reference.
    
    Accepts the whole-value placeholder ``${id.attr}``, the mapping
    ``{ref: "id.attr"}`` and the canonical mapping ``{"$ref": "id.attr"}``.
    
    Returns:
        Reference, or None if the value is not a reference
        
    Raises:
        ValueError: If the value looks like a reference but is malformed
    """
    if isinstance(value, Reference):
        return value
    
    if isinstance(value, str):
        match = PLACEHOLDER_PATTERN.match(value)
        if match:
            return Reference(target=match.group(1), attribute=match.group(2))
        if EMBEDDED_PATTERN.search(value):
            raise ValueError(
                f"placeholder in '{value}' must be the whole value; "
                "references are not interpolated into strings"
            )
        return None
    
    if isinstance(value, dict) and len(value) == 1:
        key = next(iter(value))
        if key in ("ref", CANONICAL_KEY):
            address = value[key]
            if not isinstance(address, str) or "." not in address:
                raise ValueError(f"reference '{address}' must have the form <resource_id>.<attribute>")
            target, attribute = address.split(".", 1)
            if not target or not attribute:
                raise ValueError(f"reference '{address}' must have the form <resource_id>.<attribute>")
            return Reference(target=target, attribute=attribute)
    
    return None


def resolve_declared(value: Any) -> Any:
    """Convert every reference placeholder inside a declared value into a Reference."""
    ref = parse_reference(value)
    if ref is not None:
        return ref
    if isinstance(value, dict):
        return {k: resolve_declared(v) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_declared(v) for v in value]
    return value


def iter_references(value: Any) -> Iterator[Reference]:
    """Yield every Reference found in a value, recursing into lists and mappings."""
    if isinstance(value, Reference):
        yield value
    elif isinstance(value, dict):
        for item in value.values():
            yield from iter_references(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_references(item)


def to_canonical(value: Any) -> Any:
    """JSON-safe form of a value: references become ``{"$ref": "id.attr"}``."""
    if isinstance(value, Reference):
        return {CANONICAL_KEY: value.address}
    if isinstance(value, dict):
        return {k: to_canonical(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_canonical(v) for v in value]
    return value


def substitute(value: Any, lookup) -> Any:
    """Replace references with concrete values returned by ``lookup(reference)``."""
    if isinstance(value, Reference):
        return lookup(value)
    if isinstance(value, dict):
        return {k: substitute(v, lookup) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [substitute(v, lookup) for v in value]
    return value
