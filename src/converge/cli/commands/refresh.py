"""Refresh command - reconcile state with what the provider reports."""

import json
import sys
import click
from ...state.refresh import refresh_state
from ...utils.errors import ConvergeError
from ...utils.logging import get_logger
from ..utils import format_error, load_context, make_provider

logger = get_logger("cli.refresh")


@click.command()
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True), help='Path to config YAML file')
@click.option('--state', 'state_path', type=click.Path(), help='Path to state file (overrides config)')
@click.option('--provider', 'provider_name', help='Provider name or module:Factory (overrides config)')
@click.option('--json', 'json_output', is_flag=True, help='Output structured JSON')
def refresh(config_path, state_path, provider_name, json_output):
    """Drop state records whose resources no longer exist and update outputs."""
    try:
        config, store = load_context(config_path, state_path)
        provider = make_provider(config, provider_name)
        changes = refresh_state(store, provider)
        
        if json_output:
            click.echo(json.dumps(changes, indent=2, sort_keys=True))
            return
        
        for resource_id, change in sorted(changes.items()):
            if change != "unchanged":
                click.echo(f"{resource_id}: {change}")
        click.echo(f"Refreshed {len(changes)} resources.")
    
    except ConvergeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
