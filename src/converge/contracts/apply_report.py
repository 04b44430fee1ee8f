"""Pydantic model for the apply report (versioned, stable, explicit)."""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field
from ..planner.models import Action

APPLY_REPORT_VERSION = "1.0.0"


class ResourceOutcome(str, Enum):
    """Final status of one resource in an apply run."""
    READY = "Ready"
    DESTROYED = "Destroyed"
    FAILED = "Failed"
    SKIPPED = "Skipped"
    CANCELLED = "Cancelled"


class ApplyOutcome(str, Enum):
    """Overall exit classification of an apply run."""
    SUCCESS = "Success"
    PARTIAL_FAILURE = "PartialFailure"
    PARTIAL = "Partial"
    FATAL = "Fatal"


class ResourceResult(BaseModel):
    """Per-resource apply result."""
    resource_id: str = Field(..., description="Resource identifier")
    action: Action = Field(..., description="Action that was planned")
    final_status: ResourceOutcome = Field(..., description="Final status")
    error: Optional[str] = Field(None, description="Error message for failed or skipped resources")
    attempts: int = Field(default=0, ge=0, description="Provider operation attempts")
    duration_seconds: float = Field(default=0.0, ge=0)

    class Config:
        use_enum_values = True


class ApplyReport(BaseModel):
    """Apply report contract consumed by CLI and CI collaborators."""
    version: str = Field(default=APPLY_REPORT_VERSION, description="Report contract version")
    outcome: ApplyOutcome = Field(..., description="Overall exit classification")
    resources: List[ResourceResult] = Field(default_factory=list, description="Per-resource results in plan order")
    error: Optional[str] = Field(None, description="Fatal error message")

    class Config:
        use_enum_values = True

    @classmethod
    def fatal(cls, error: Exception) -> "ApplyReport":
        return cls(outcome=ApplyOutcome.FATAL, error=str(error))

    def _with_status(self, status: ResourceOutcome) -> List[str]:
        return [r.resource_id for r in self.resources if r.final_status == status.value]

    @property
    def failed(self) -> List[str]:
        return self._with_status(ResourceOutcome.FAILED)

    @property
    def skipped(self) -> List[str]:
        return self._with_status(ResourceOutcome.SKIPPED)

    @property
    def cancelled(self) -> List[str]:
        return self._with_status(ResourceOutcome.CANCELLED)

    def get(self, resource_id: str) -> Optional[ResourceResult]:
        for result in self.resources:
            if result.resource_id == resource_id:
                return result
        return None
