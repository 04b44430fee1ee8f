"""Plan data model: actions, planned changes and waves."""

from enum import Enum
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field


class Action(str, Enum):
    """Planned action for a single resource."""
    CREATE = "Create"
    UPDATE = "Update"
    REPLACE = "Replace"
    DELETE = "Delete"
    NO_OP = "NoOp"


class PlannedChange(BaseModel):
    """One resource operation within a wave."""
    resource_id: str = Field(..., description="Resource identifier")
    type: str = Field(..., description="Resource type")
    action: Action = Field(..., description="Planned action")
    before: Optional[Dict[str, Any]] = Field(None, description="Last applied canonical attributes")
    after: Optional[Dict[str, Any]] = Field(None, description="Desired canonical attributes")
    changed_attributes: List[str] = Field(default_factory=list, description="Attributes that differ")
    reason: str = Field(default="", description="Why this action was chosen")

    @property
    def is_noop(self) -> bool:
        return self.action == Action.NO_OP


class Wave(BaseModel):
    """Set of changes with no dependency edges among them."""
    index: int = Field(..., ge=0)
    changes: List[PlannedChange] = Field(default_factory=list)

    @property
    def resource_ids(self) -> List[str]:
        return [c.resource_id for c in self.changes]


class Plan(BaseModel):
    """Ordered waves plus the prerequisites each change waits on."""
    waves: List[Wave] = Field(default_factory=list)
    prerequisites: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="resource id -> ids whose operations must succeed first"
    )

    @property
    def changes(self) -> List[PlannedChange]:
        return [c for wave in self.waves for c in wave.changes]

    @property
    def has_changes(self) -> bool:
        return any(not c.is_noop for c in self.changes)

    def get_change(self, resource_id: str) -> Optional[PlannedChange]:
        for change in self.changes:
            if change.resource_id == resource_id:
                return change
        return None

    def action_counts(self) -> Dict[str, int]:
        counts = {action.value: 0 for action in Action}
        for change in self.changes:
            counts[change.action.value] += 1
        return counts

    def wave_layout(self) -> List[List[str]]:
        return [wave.resource_ids for wave in self.waves]

    def to_report(self) -> "PlanReport":
        from ..contracts.plan_report import PlanReport
        return PlanReport.from_plan(self)
