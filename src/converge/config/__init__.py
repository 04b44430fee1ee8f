"""Configuration module: load engine settings, readiness budgets and replace policy."""

from pathlib import Path
from typing import Dict, Any, Optional
from pydantic import ValidationError as PydanticValidationError
from ..utils.errors import ConfigError
from ..utils.logging import get_logger
from .manager import load_config, deep_merge, read_yaml
from .models import EngineConfig, EngineSettings, StateSettings, ProviderSettings
from .paths import DEFAULTS_PATH, get_user_config_path, get_project_config_path

logger = get_logger("config")


def load_engine_config(config_path: Optional[str] = None, use_user_config: bool = True) -> EngineConfig:
    """
    Load engine configuration.
    
    Layers, lowest precedence first: packaged defaults.yaml, user config,
    project config, then the explicit ``config_path``.
    
    Args:
        config_path: Optional path to a config YAML file
        use_user_config: Merge user and project config files
        
    Returns:
        Validated EngineConfig
        
    Raises:
        ConfigError: If a file is invalid or values fail validation
    """
    config: Dict[str, Any] = read_yaml(DEFAULTS_PATH)
    
    if use_user_config:
        deep_merge(config, load_config())
    
    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        deep_merge(config, read_yaml(path))
        logger.info(f"Loaded configuration from {config_path}")
    
    try:
        return EngineConfig(**config)
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}")


__all__ = [
    "EngineConfig",
    "EngineSettings",
    "StateSettings",
    "ProviderSettings",
    "load_engine_config",
    "load_config",
    "get_user_config_path",
    "get_project_config_path",
]
