"""CLI utilities package."""

import json
from typing import Optional, Tuple
import click
from ...config import EngineConfig, load_engine_config
from ...provider import ProviderAdapter, load_provider
from ...state import FileStateStore
from ...utils.logging import get_logger
from .file_resolver import resolve_file_path

logger = get_logger("cli.utils")

# Exit codes shared by plan/apply/destroy.
EXIT_OK = 0
EXIT_ERROR = 1
EXIT_PARTIAL_FAILURE = 2
EXIT_PARTIAL = 3

OUTCOME_EXIT_CODES = {
    "Success": EXIT_OK,
    "Fatal": EXIT_ERROR,
    "PartialFailure": EXIT_PARTIAL_FAILURE,
    "Partial": EXIT_PARTIAL,
}


def format_error(message: str, suggestion: Optional[str] = None) -> str:
    """
    Format error message with optional suggestion.
    
    Args:
        message: Error message
        suggestion: Optional suggestion or help text
        
    Returns:
        Formatted error string
    """
    error = f"Error: {message}"
    if suggestion:
        error += f"\nTip: {suggestion}"
    return error


def load_context(
    config_path: Optional[str],
    state_path: Optional[str] = None,
) -> Tuple[EngineConfig, FileStateStore]:
    """Load engine configuration and open the state store it points at."""
    config = load_engine_config(config_path)
    store = FileStateStore(state_path or config.state.path, lock_timeout=config.engine.lock_timeout)
    return config, store


def make_provider(config: EngineConfig, provider_name: Optional[str] = None) -> ProviderAdapter:
    """Build the configured provider, or the named one when given on the command line."""
    if provider_name and provider_name != config.provider.name:
        return load_provider(provider_name)
    return load_provider(config.provider.name, config.provider.options)


def echo_text(text: str) -> None:
    """Echo text, degrading to ASCII on terminals that cannot encode it."""
    try:
        click.echo(text)
    except UnicodeEncodeError:
        click.echo(text.encode('ascii', errors='replace').decode('ascii'))


def write_output(text: str, output: Optional[str], quiet: bool) -> None:
    """Write text to a file when ``output`` is set, otherwise to stdout."""
    if output:
        from pathlib import Path
        output_path = Path(output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(text)
        if not quiet:
            click.echo(f"Output saved to: {output_path}", err=True)
    else:
        echo_text(text)


def to_json(model) -> str:
    return json.dumps(model.model_dump(), indent=2, default=str)


__all__ = [
    "resolve_file_path",
    "format_error",
    "load_context",
    "make_provider",
    "echo_text",
    "write_output",
    "to_json",
    "OUTCOME_EXIT_CODES",
]
