"""Pydantic models for declared resources and persisted state records."""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator

RESOURCE_ID_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")


class Reference(BaseModel):
    """Typed pointer at another resource's output attribute."""
    target: str = Field(..., description="Id of the referenced resource")
    attribute: str = Field(..., description="Output attribute of the referenced resource")

    class Config:
        frozen = True

    @property
    def address(self) -> str:
        return f"{self.target}.{self.attribute}"

    def __str__(self) -> str:
        return f"${{{self.address}}}"


class Resource(BaseModel):
    """Desired infrastructure resource."""
    id: str = Field(..., description="Stable resource identifier")
    type: str = Field(..., description="Resource type, selects provider behavior and replace policy")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Desired attributes (may contain references)")
    depends_on: List[str] = Field(default_factory=list, description="Explicit dependencies by resource id")

    @field_validator("id")
    @classmethod
    def _check_id(cls, value: str) -> str:
        if not RESOURCE_ID_PATTERN.match(value):
            raise ValueError(f"invalid resource id '{value}'")
        return value

    @field_validator("type")
    @classmethod
    def _check_type(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("resource type must not be empty")
        return value

    def canonical_attributes(self) -> Dict[str, Any]:
        """Attributes in their JSON-safe persisted form (references unresolved)."""
        from .references import to_canonical
        return to_canonical(self.attributes)


class ResourceStatus(str, Enum):
    """Lifecycle status of a persisted resource."""
    ABSENT = "Absent"
    PENDING = "Pending"
    CREATING = "Creating"
    READY = "Ready"
    FAILED = "Failed"
    DESTROYING = "Destroying"
    DESTROYED = "Destroyed"


class StateRecord(BaseModel):
    """Last-applied state of a single resource."""
    id: str = Field(..., description="Resource identifier")
    type: str = Field(..., description="Resource type")
    provider_id: Optional[str] = Field(None, description="Identifier assigned by the provider")
    last_applied_attributes: Dict[str, Any] = Field(default_factory=dict, description="Canonical attributes last applied")
    outputs: Dict[str, Any] = Field(default_factory=dict, description="Provider output attributes")
    dependencies: List[str] = Field(default_factory=list, description="Dependency ids at apply time")
    status: ResourceStatus = Field(default=ResourceStatus.PENDING, description="Lifecycle status")
    tainted: bool = Field(default=False, description="Provider object is unusable and must be replaced")
    error: Optional[str] = Field(None, description="Last error recorded for this resource")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_tainted(self) -> bool:
        """Records left mid-operation, or marked tainted, must be replaced."""
        return self.tainted or self.status in (
            ResourceStatus.PENDING, ResourceStatus.CREATING, ResourceStatus.DESTROYING
        )
