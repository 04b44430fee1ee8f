"""CI/CD artifact generation from plan and apply reports."""

import json
from pathlib import Path
from typing import Optional
from ..contracts.apply_report import ApplyReport
from ..contracts.plan_report import PlanReport
from ..utils.errors import ConvergeError
from ..utils.logging import get_logger
from .markdown import generate_markdown

logger = get_logger("report.artifact")


def _dump(data: dict, path: Path) -> None:
    try:
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, sort_keys=True, default=str)
        logger.debug(f"Written {path.name}: {path}")
    except (OSError, TypeError) as e:
        raise ConvergeError(f"Failed to write {path.name}: {e}")


def generate_artifacts(
    output_dir: Path,
    plan_report: Optional[PlanReport] = None,
    apply_report: Optional[ApplyReport] = None,
) -> None:
    """
    Write CI/CD artifacts.
    
    Creates, for whatever reports are given:
    - plan.json: Full plan report
    - apply.json: Full apply report
    - summary.json: Counts and outcome
    - report.md: Markdown rendering
    
    Raises:
        ConvergeError: If the directory or a file cannot be written
    """
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConvergeError(f"Failed to create output directory: {e}")
    
    summary = {}
    if plan_report is not None:
        _dump(plan_report.model_dump(), output_dir / "plan.json")
        summary["plan"] = {"has_changes": plan_report.has_changes, "counts": plan_report.counts}
    if apply_report is not None:
        _dump(apply_report.model_dump(), output_dir / "apply.json")
        summary["apply"] = {
            "outcome": apply_report.outcome,
            "failed": apply_report.failed,
            "skipped": apply_report.skipped,
            "cancelled": apply_report.cancelled,
        }
    _dump(summary, output_dir / "summary.json")
    generate_markdown(output_dir / "report.md", plan_report=plan_report, apply_report=apply_report)
    logger.info(f"Generated artifacts in {output_dir}")
