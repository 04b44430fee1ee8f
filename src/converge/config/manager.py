"""Layered configuration files: user config with project override."""

import yaml
from pathlib import Path
from typing import Any, Dict, List
from .paths import get_user_config_path, get_project_config_path
from ..utils.errors import ConfigError
from ..utils.logging import get_logger

logger = get_logger("config.manager")


def read_yaml(path: Path) -> Dict[str, Any]:
    """
    Read a YAML mapping.
    
    Raises:
        ConfigError: If the file is unreadable or not a mapping
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {path}: {e}")
    except OSError as e:
        raise ConfigError(f"Error reading config file {path}: {e}")
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def config_layers() -> List[Path]:
    """Existing user and project config files, lowest precedence first."""
    layers = []
    user_config_path = get_user_config_path()
    if user_config_path.exists():
        layers.append(user_config_path)
    project_config_path = get_project_config_path()
    if project_config_path:
        layers.append(project_config_path)
    return layers


def load_config() -> Dict[str, Any]:
    """
    Merge the user and project config files.
    
    Unreadable files are skipped with a warning so a broken user config
    never blocks a run.
    
    Returns:
        Configuration dictionary (project config overrides user config)
    """
    config: Dict[str, Any] = {}
    for path in config_layers():
        try:
            deep_merge(config, read_yaml(path))
        except ConfigError as e:
            logger.warning(f"Ignoring config file: {e}")
            continue
        logger.debug(f"Merged config from {path}")
    return config


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Deep merge override into base (mutates base)."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            deep_merge(base[key], value)
        else:
            base[key] = value
