"""State commands - inspect and repair persisted state without a provider."""

import json
import sys
import click
from ...presentation.formatter import format_state
from ...utils.errors import ConvergeError
from ...utils.logging import get_logger
from ..utils import format_error, load_context

logger = get_logger("cli.state")

state_options = [
    click.option('--config', '-c', 'config_path', type=click.Path(exists=True), help='Path to config YAML file'),
    click.option('--state', 'state_path', type=click.Path(), help='Path to state file (overrides config)'),
]


def with_state_options(func):
    for option in reversed(state_options):
        func = option(func)
    return func


@click.group()
def state():
    """Inspect and repair persisted state."""
    pass


@state.command('list')
@with_state_options
@click.option('--json', 'json_output', is_flag=True, help='Output structured JSON')
def list_records(config_path, state_path, json_output):
    """List recorded resources."""
    try:
        _, store = load_context(config_path, state_path)
        records = store.load()
        if json_output:
            click.echo(json.dumps(
                {rid: rec.model_dump(mode="json") for rid, rec in sorted(records.items())},
                indent=2,
            ))
        else:
            click.echo(format_state(records))
    except ConvergeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)


@state.command()
@click.argument('resource_id')
@with_state_options
def show(resource_id, config_path, state_path):
    """Show one state record as JSON."""
    try:
        _, store = load_context(config_path, state_path)
        record = store.get(resource_id)
        if record is None:
            click.echo(format_error(f"Resource '{resource_id}' not found in state"), err=True)
            sys.exit(1)
        click.echo(json.dumps(record.model_dump(mode="json"), indent=2, sort_keys=True))
    except ConvergeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)


@state.command()
@click.argument('resource_id')
@with_state_options
def rm(resource_id, config_path, state_path):
    """Forget a resource without deleting it from the provider."""
    try:
        _, store = load_context(config_path, state_path)
        with store.lock("state rm"):
            if store.get(resource_id) is None:
                click.echo(format_error(f"Resource '{resource_id}' not found in state"), err=True)
                sys.exit(1)
            store.remove(resource_id)
        click.echo(f"Removed '{resource_id}' from state.")
    except ConvergeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)


@state.command()
@with_state_options
@click.option('--force', is_flag=True, help='Remove the lock without confirmation')
def unlock(config_path, state_path, force):
    """Remove a stale state lock left by a crashed run."""
    try:
        _, store = load_context(config_path, state_path)
        info = store.lock_info()
        if info is None:
            click.echo("State is not locked.")
            return
        
        click.echo(
            f"Lock {info.get('id')} held for '{info.get('operation')}' by pid {info.get('pid')} "
            f"on {info.get('host')} since {info.get('created')}"
        )
        if not force:
            click.confirm("Remove this lock? Only do this if no other run is active", abort=True)
        store.force_unlock()
        click.echo("State lock removed.")
    except ConvergeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
