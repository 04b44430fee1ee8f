"""Locations of the packaged, user and project config files."""

import os
from pathlib import Path
from typing import Optional

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"
CONFIG_DIR = ".converge"
CONFIG_FILE = "config.yaml"
HOME_ENV = "CONVERGE_HOME"


def get_user_config_path() -> Path:
    """User config: $CONVERGE_HOME/config.yaml, else ~/.converge/config.yaml"""
    override = os.environ.get(HOME_ENV)
    if override:
        return Path(override) / CONFIG_FILE
    return Path.home() / CONFIG_DIR / CONFIG_FILE


def get_project_config_path(start: Optional[Path] = None) -> Optional[Path]:
    """Project config: .converge/config.yaml in the working directory, if present."""
    candidate = (start or Path.cwd()) / CONFIG_DIR / CONFIG_FILE
    return candidate if candidate.exists() else None
