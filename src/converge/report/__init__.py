"""Report generation - markdown and CI artifacts."""

from .markdown import generate_markdown, render_plan_markdown, render_apply_markdown
from .artifact import generate_artifacts

__all__ = ["generate_markdown", "render_plan_markdown", "render_apply_markdown", "generate_artifacts"]
