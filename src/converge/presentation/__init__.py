"""Presentation layer - human-readable rendering of plans and apply reports."""

from .formatter import format_plan, format_apply, format_state

__all__ = ["format_plan", "format_apply", "format_state"]
