"""Planner: diff desired resources against state and order the operations."""

from .models import Action, Plan, PlannedChange, Wave
from .policy import ReplacePolicy
from .planner import plan, classify, diff_attributes, layer_waves

__all__ = [
    "Action",
    "Plan",
    "PlannedChange",
    "Wave",
    "ReplacePolicy",
    "plan",
    "classify",
    "diff_attributes",
    "layer_waves",
]
