"""Markdown report generation from plan and apply reports."""

import json
from pathlib import Path
from typing import List, Optional
from ..contracts.apply_report import ApplyReport
from ..contracts.plan_report import PlanReport
from ..utils.errors import ConvergeError
from ..utils.logging import get_logger

logger = get_logger("report.markdown")


def _write(sections: List[str], output_path: Path, kind: str) -> None:
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write("\n".join(sections))
        logger.info(f"Generated {kind} markdown report: {output_path}")
    except OSError as e:
        raise ConvergeError(f"Failed to write {kind} markdown report: {e}")


def render_plan_markdown(plan_report: PlanReport) -> List[str]:
    """Markdown lines describing a plan."""
    sections = []
    
    sections.append("# Converge Plan")
    sections.append("")
    
    sections.append("## Summary")
    sections.append("")
    for action in ("Create", "Update", "Replace", "Delete", "NoOp"):
        sections.append(f"- **{action}:** {plan_report.counts.get(action, 0)}")
    sections.append("")
    
    sections.append("## Waves")
    sections.append("")
    if plan_report.waves:
        for index, members in enumerate(plan_report.waves):
            sections.append(f"{index}. {', '.join(f'`{m}`' for m in members)}")
    else:
        sections.append("No resources declared or recorded.")
    sections.append("")
    
    sections.append("## Changes")
    sections.append("")
    changed = [e for e in plan_report.changes if e.action != "NoOp"]
    if not changed:
        sections.append("No changes.")
        sections.append("")
    for entry in changed:
        sections.append(f"### `{entry.resource_id}` ({entry.type}): {entry.action}")
        sections.append("")
        if entry.reason:
            sections.append(f"- **Reason:** {entry.reason}")
        sections.append(f"- **Wave:** {entry.wave}")
        if entry.changed_attributes:
            sections.append(f"- **Changed attributes:** {', '.join(f'`{a}`' for a in entry.changed_attributes)}")
        sections.append("")
        if entry.after_attributes is not None:
            sections.append("```json")
            sections.append(json.dumps(entry.after_attributes, indent=2, sort_keys=True, default=str))
            sections.append("```")
            sections.append("")
    
    return sections


def render_apply_markdown(apply_report: ApplyReport) -> List[str]:
    """Markdown lines describing an apply run."""
    sections = []
    
    sections.append("# Converge Apply Report")
    sections.append("")
    sections.append(f"- **Outcome:** {apply_report.outcome}")
    if apply_report.error:
        sections.append(f"- **Error:** {apply_report.error}")
    sections.append("")
    
    if apply_report.resources:
        sections.append("## Resources")
        sections.append("")
        sections.append("| Resource | Action | Status | Error |")
        sections.append("|---|---|---|---|")
        for result in apply_report.resources:
            error = (result.error or "").replace("|", "\\|")
            sections.append(f"| `{result.resource_id}` | {result.action} | {result.final_status} | {error} |")
        sections.append("")
    
    if apply_report.failed or apply_report.skipped:
        sections.append("## Follow-up")
        sections.append("")
        sections.append(
            "Resources that completed are recorded in state; re-running apply retries only "
            "the failed resources and those skipped because of them."
        )
        sections.append("")
    
    return sections


def generate_markdown(
    output_path: Path,
    plan_report: Optional[PlanReport] = None,
    apply_report: Optional[ApplyReport] = None,
) -> None:
    """
    Generate a markdown report from a plan report, an apply report, or both.
    
    Raises:
        ConvergeError: If nothing is given or the file write fails
    """
    if plan_report is None and apply_report is None:
        raise ConvergeError("Nothing to report: pass a plan report or an apply report")
    
    sections: List[str] = []
    if plan_report is not None:
        sections.extend(render_plan_markdown(plan_report))
    if apply_report is not None:
        sections.extend(render_apply_markdown(apply_report))
    _write(sections, output_path, "plan" if apply_report is None else "apply")
