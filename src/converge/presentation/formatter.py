"""Human-friendly output formatter - converts reports to readable text."""

import json
import os
from typing import Any, Dict, List, Optional
from ..contracts.apply_report import ApplyReport
from ..contracts.plan_report import PlanReport
from ..model.models import StateRecord

ACTION_SYMBOLS = {
    "Create": ("+", "✚"),
    "Update": ("~", "∼"),
    "Replace": ("-/+", "↻"),
    "Delete": ("-", "✖"),
    "NoOp": (" ", " "),
}

STATUS_SYMBOLS = {
    "Ready": ("[OK]", "✅"),
    "Destroyed": ("[OK]", "✅"),
    "Failed": ("[FAIL]", "❌"),
    "Skipped": ("[SKIP]", "⏭️ "),
    "Cancelled": ("[STOP]", "⏹️ "),
}


def _use_ascii(ascii_mode: Optional[bool] = None) -> bool:
    """Resolve whether to use ASCII output (checked at format time)."""
    if ascii_mode is not None:
        return bool(ascii_mode)
    return os.environ.get("CONVERGE_ASCII", "").lower() in ("1", "true", "yes")


def _value(value: Any) -> str:
    if isinstance(value, dict) and list(value) == ["$ref"]:
        return f"${{{value['$ref']}}}"
    return json.dumps(value, sort_keys=True, default=str)


def _attribute_lines(entry: Dict[str, Any]) -> List[str]:
    before = entry.get("before_attributes") or {}
    after = entry.get("after_attributes") or {}
    lines = []
    for name in entry.get("changed_attributes", []):
        if name in before and name in after:
            lines.append(f"      {name}: {_value(before[name])} -> {_value(after[name])}")
        elif name in after:
            lines.append(f"      {name}: {_value(after[name])}")
        else:
            lines.append(f"      {name}: {_value(before[name])} -> (removed)")
    return lines


def format_plan(report: PlanReport, show_unchanged: bool = False, ascii_mode: Optional[bool] = None) -> str:
    """
    Render a plan report.
    
    Args:
        report: Plan report
        show_unchanged: Include NoOp resources
        ascii_mode: Force ASCII symbols (default: CONVERGE_ASCII env var)
        
    Returns:
        Multi-line plan description
    """
    ascii_out = _use_ascii(ascii_mode)
    pick = 0 if ascii_out else 1
    lines = []
    
    if not report.has_changes:
        lines.append("No changes. Infrastructure matches the declared resources.")
        return "\n".join(lines)
    
    lines.append("Execution plan")
    lines.append("-" * 60)
    current_wave = None
    for entry in report.changes:
        data = entry.model_dump()
        if data["action"] == "NoOp" and not show_unchanged:
            continue
        if data["wave"] != current_wave:
            current_wave = data["wave"]
            lines.append("")
            lines.append(f"Wave {current_wave}:")
        symbol = ACTION_SYMBOLS.get(data["action"], ("?", "?"))[pick]
        lines.append(f"  {symbol} {data['resource_id']} ({data['type']}): {data['action']}")
        if data["reason"]:
            lines.append(f"      reason: {data['reason']}")
        if data["action"] in ("Update", "Replace"):
            lines.extend(_attribute_lines(data))
    
    counts = report.counts
    lines.append("")
    lines.append(
        f"Plan: {counts.get('Create', 0)} to create, {counts.get('Update', 0)} to update, "
        f"{counts.get('Replace', 0)} to replace, {counts.get('Delete', 0)} to delete."
    )
    return "\n".join(lines)


def format_apply(report: ApplyReport, ascii_mode: Optional[bool] = None) -> str:
    """Render an apply report."""
    ascii_out = _use_ascii(ascii_mode)
    pick = 0 if ascii_out else 1
    lines = []
    
    if report.outcome == "Fatal":
        lines.append(f"Apply failed before execution: {report.error}")
        return "\n".join(lines)
    
    for result in report.resources:
        if result.action == "NoOp" and result.final_status == "Ready":
            continue
        symbol = STATUS_SYMBOLS.get(result.final_status, ("?", "?"))[pick]
        line = f"{symbol} {result.resource_id}: {result.action} -> {result.final_status}"
        if result.error:
            line += f" ({result.error})"
        lines.append(line)
    
    if lines:
        lines.append("")
    lines.append(f"Apply outcome: {report.outcome}")
    if report.failed:
        lines.append(f"  Failed: {', '.join(report.failed)}")
    if report.skipped:
        lines.append(f"  Skipped: {', '.join(report.skipped)}")
    if report.cancelled:
        lines.append(f"  Not started: {', '.join(report.cancelled)}")
    return "\n".join(lines)


def format_state(records: Dict[str, StateRecord]) -> str:
    """Render state records as an aligned table."""
    if not records:
        return "State is empty."
    rows = [("ID", "TYPE", "STATUS", "PROVIDER ID")]
    for resource_id in sorted(records):
        record = records[resource_id]
        status = record.status.value + (" (tainted)" if record.tainted else "")
        rows.append((resource_id, record.type, status, record.provider_id or "-"))
    widths = [max(len(row[i]) for row in rows) for i in range(4)]
    return "\n".join(
        "  ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)).rstrip()
        for row in rows
    )
