"""Output contracts: plan and apply reports."""

from .plan_report import PlanReport, PlanReportEntry
from .apply_report import ApplyReport, ApplyOutcome, ResourceOutcome, ResourceResult

__all__ = [
    "PlanReport",
    "PlanReportEntry",
    "ApplyReport",
    "ApplyOutcome",
    "ResourceOutcome",
    "ResourceResult",
]
