"""Pydantic model for the plan report (versioned, stable, explicit)."""

from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field
from ..planner.models import Action, Plan

PLAN_REPORT_VERSION = "1.0.0"


class PlanReportEntry(BaseModel):
    """One ordered entry of the plan report."""
    resource_id: str = Field(..., description="Resource identifier")
    type: str = Field(..., description="Resource type")
    action: Action = Field(..., description="Planned action")
    wave: int = Field(..., ge=0, description="Wave the action runs in")
    before_attributes: Optional[Dict[str, Any]] = Field(None, description="Attributes before the change")
    after_attributes: Optional[Dict[str, Any]] = Field(None, description="Attributes after the change")
    changed_attributes: List[str] = Field(default_factory=list)
    reason: str = Field(default="")

    class Config:
        use_enum_values = True


class PlanReport(BaseModel):
    """Plan report contract consumed by CLI and CI collaborators."""
    version: str = Field(default=PLAN_REPORT_VERSION, description="Report contract version")
    has_changes: bool = Field(..., description="False when every action is NoOp")
    counts: Dict[str, int] = Field(default_factory=dict, description="Number of resources per action")
    waves: List[List[str]] = Field(default_factory=list, description="Resource ids per wave")
    changes: List[PlanReportEntry] = Field(default_factory=list, description="Ordered plan entries")

    class Config:
        use_enum_values = True

    @classmethod
    def from_plan(cls, plan: Plan) -> "PlanReport":
        entries = []
        for wave in plan.waves:
            for change in wave.changes:
                entries.append(PlanReportEntry(
                    resource_id=change.resource_id,
                    type=change.type,
                    action=change.action,
                    wave=wave.index,
                    before_attributes=change.before,
                    after_attributes=change.after,
                    changed_attributes=change.changed_attributes,
                    reason=change.reason,
                ))
        return cls(
            has_changes=plan.has_changes,
            counts=plan.action_counts(),
            waves=plan.wave_layout(),
            changes=entries,
        )
