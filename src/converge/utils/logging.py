"""Logging setup for converge."""

import logging
import os
import sys
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LEVEL_ENV = "CONVERGE_LOG_LEVEL"


def _resolve_level(level: Union[int, str, None]) -> int:
    if level is None:
        level = os.environ.get(LEVEL_ENV, "INFO")
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        return resolved if isinstance(resolved, int) else logging.INFO
    return level


def setup_logging(level: Union[int, str, None] = None, format_string: Optional[str] = None) -> logging.Logger:
    """
    Configure the ``converge`` logger hierarchy.
    
    Args:
        level: Level number or name (default: CONVERGE_LOG_LEVEL, else INFO)
        format_string: Custom format string (optional)
    
    Returns:
        The root ``converge`` logger
    """
    resolved = _resolve_level(level)
    logging.basicConfig(
        level=resolved,
        format=format_string or LOG_FORMAT,
        stream=sys.stderr,
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    
    logger = logging.getLogger("converge")
    logger.setLevel(resolved)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a specific module."""
    return logging.getLogger(f"converge.{name}")
