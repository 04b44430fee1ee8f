"""Load resource declarations from YAML or JSON files."""

import json
from pathlib import Path
from typing import Any, Dict, List
import yaml
from pydantic import ValidationError as PydanticValidationError
from ..utils.errors import ValidationError
from ..utils.logging import get_logger
from .models import Resource
from .references import resolve_declared
from .validator import validate_document_structure, validate_resource_entry, validate_unique_ids

logger = get_logger("model.loader")


def load_declarations(path: str) -> List[Resource]:
    """
    Load and validate a resource declaration file.
    
    Args:
        path: Path to a YAML (.yaml/.yml) or JSON declaration file
        
    Returns:
        List of declared resources with references parsed
        
    Raises:
        ValidationError: If the file cannot be read or is invalid
    """
    file_path = Path(path)
    
    if not file_path.exists():
        raise ValidationError(
            f"Declaration file not found: {path}. "
            "Please check the file path and ensure the file exists."
        )
    
    if not file_path.is_file():
        raise ValidationError(f"Path is not a file: {path}")
    
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            if file_path.suffix.lower() == ".json":
                document = json.load(f)
            else:
                document = yaml.safe_load(f)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON in declaration file: {e}")
    except yaml.YAMLError as e:
        raise ValidationError(f"Invalid YAML in declaration file: {e}")
    except OSError as e:
        raise ValidationError(f"Error reading declaration file: {e}")
    
    resources = parse_declarations(document)
    logger.info(f"Loaded {len(resources)} resources from {path}")
    return resources


def parse_declarations(document: Dict[str, Any]) -> List[Resource]:
    """
    Build Resource objects from an already-parsed declaration document.
    
    Raises:
        ValidationError: If any entry is malformed
    """
    validate_document_structure(document)
    entries = document["resources"]
    
    problems = []
    for index, entry in enumerate(entries):
        problems.extend(validate_resource_entry(entry, index))
    if problems:
        raise ValidationError("Invalid resource declarations:\n" + "\n".join(f"  - {p}" for p in problems))
    
    problems = validate_unique_ids(entries)
    if problems:
        raise ValidationError("Invalid resource declarations:\n" + "\n".join(f"  - {p}" for p in problems))
    
    resources = []
    for index, entry in enumerate(entries):
        try:
            attributes = resolve_declared(entry.get("attributes") or {})
        except ValueError as e:
            raise ValidationError(f"resources[{index}] ({entry['id']}): {e}")
        try:
            resources.append(Resource(
                id=entry["id"],
                type=entry["type"],
                attributes=attributes,
                depends_on=list(entry.get("depends_on") or []),
            ))
        except PydanticValidationError as e:
            raise ValidationError(f"resources[{index}]: {e}")
    
    return resources
