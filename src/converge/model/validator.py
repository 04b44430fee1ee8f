"""Validate resource declaration document structure."""

from typing import Dict, Any, List
from ..utils.errors import ValidationError
from ..utils.logging import get_logger

logger = get_logger("model.validator")

SUPPORTED_VERSIONS = [1]
RESOURCE_FIELDS = {"id", "type", "attributes", "depends_on"}


def validate_document_structure(document: Any) -> None:
    """
    Validate the top-level structure of a declaration document.
    
    Args:
        document: Parsed YAML/JSON document
        
    Raises:
        ValidationError: If the structure is invalid
    """
    if not isinstance(document, dict):
        raise ValidationError(
            "Declaration document must be a mapping with a 'resources' list."
        )
    
    version = document.get("version", 1)
    if version not in SUPPORTED_VERSIONS:
        raise ValidationError(
            f"Unsupported declaration version: {version}. "
            f"Supported versions: {', '.join(str(v) for v in SUPPORTED_VERSIONS)}"
        )
    
    if "resources" not in document:
        raise ValidationError("Declaration document missing required field: resources")
    
    resources = document["resources"]
    if resources is None:
        document["resources"] = []
    elif not isinstance(resources, list):
        raise ValidationError("Declaration 'resources' must be a list")
    
    logger.debug("Declaration structure validation passed")


def validate_resource_entry(entry: Any, index: int) -> List[str]:
    """
    Validate a single resource entry.
    
    Args:
        entry: Resource entry from the document
        index: Position of the entry (for messages)
        
    Returns:
        List of validation problems (empty if valid)
    """
    problems = []
    
    if not isinstance(entry, dict):
        problems.append(f"resources[{index}]: must be a mapping")
        return problems
    
    for field in ("id", "type"):
        if field not in entry:
            problems.append(f"resources[{index}]: missing required field '{field}'")
        elif not isinstance(entry[field], str):
            problems.append(f"resources[{index}]: '{field}' must be a string")

    unknown = set(entry) - RESOURCE_FIELDS
    if unknown:
        problems.append(f"resources[{index}]: unknown fields {sorted(unknown)}")
    
    attributes = entry.get("attributes", {})
    if attributes is not None and not isinstance(attributes, dict):
        problems.append(f"resources[{index}]: 'attributes' must be a mapping")
    
    depends_on = entry.get("depends_on", [])
    if depends_on is not None and (
        not isinstance(depends_on, list) or not all(isinstance(d, str) for d in depends_on)
    ):
        problems.append(f"resources[{index}]: 'depends_on' must be a list of resource ids")
    
    return problems


def validate_unique_ids(entries: List[Dict[str, Any]]) -> List[str]:
    """Report resource ids declared more than once."""
    seen = set()
    problems = []
    for entry in entries:
        resource_id = entry.get("id")
        if resource_id in seen:
            problems.append(f"duplicate resource id '{resource_id}'")
        seen.add(resource_id)
    return problems
