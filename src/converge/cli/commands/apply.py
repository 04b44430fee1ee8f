"""Apply command - reconcile infrastructure with the declared resources."""

import signal
import sys
import threading
from contextlib import contextmanager
from pathlib import Path
import click
from ... import apply_resources, destroy_resources
from ...presentation.formatter import format_apply
from ...report.artifact import generate_artifacts
from ...utils.errors import ConvergeError
from ...utils.logging import get_logger
from ..utils import (
    OUTCOME_EXIT_CODES,
    format_error,
    load_context,
    make_provider,
    resolve_file_path,
    to_json,
    echo_text,
)

logger = get_logger("cli.apply")


@contextmanager
def abort_on_interrupt(quiet: bool):
    """Turn the first Ctrl-C into an abort signal for the running apply."""
    abort = threading.Event()
    
    def handler(signum, frame):
        if not quiet:
            click.echo("Interrupt received: finishing in-flight operations, starting no new ones", err=True)
        abort.set()
    
    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield abort
    finally:
        signal.signal(signal.SIGINT, previous)


def _finish(report, json_output, artifacts, quiet):
    if json_output:
        click.echo(to_json(report))
    else:
        echo_text(format_apply(report))
    
    if artifacts:
        generate_artifacts(Path(artifacts), apply_report=report)
        if not quiet:
            click.echo(f"Artifacts saved to: {artifacts}", err=True)
    
    sys.exit(OUTCOME_EXIT_CODES.get(report.outcome, 1))


@click.command()
@click.argument('declarations', type=click.Path(exists=False), default=".")
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True), help='Path to config YAML file')
@click.option('--state', 'state_path', type=click.Path(), help='Path to state file (overrides config)')
@click.option('--provider', 'provider_name', help='Provider name or module:Factory (overrides config)')
@click.option('--refresh', is_flag=True, help='Refresh state from the provider before planning')
@click.option('--json', 'json_output', is_flag=True, help='Output structured JSON apply report')
@click.option('--artifacts', type=click.Path(), help='Write plan/apply artifacts to this directory')
@click.option('--quiet', is_flag=True, help='Suppress progress messages')
def apply(declarations, config_path, state_path, provider_name, refresh, json_output, artifacts, quiet):
    """
    Apply the declared resources.
    
    Exit codes: 0 success, 1 fatal error, 2 some resources failed or were
    skipped, 3 interrupted (partial apply).
    """
    try:
        try:
            path = resolve_file_path(declarations)
        except FileNotFoundError as e:
            click.echo(format_error(str(e)), err=True)
            sys.exit(1)
        
        config, store = load_context(config_path, state_path)
        provider = make_provider(config, provider_name)
        
        if not quiet:
            click.echo(f"Applying {path} (state: {store.path})", err=True)
        
        with abort_on_interrupt(quiet) as abort:
            report = apply_resources(str(path), store, provider, config=config, abort_event=abort, refresh=refresh)
        _finish(report, json_output, artifacts, quiet)
    
    except ConvergeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Apply failed: {e}"), err=True)
        sys.exit(1)


@click.command()
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True), help='Path to config YAML file')
@click.option('--state', 'state_path', type=click.Path(), help='Path to state file (overrides config)')
@click.option('--provider', 'provider_name', help='Provider name or module:Factory (overrides config)')
@click.option('--yes', is_flag=True, help='Do not ask for confirmation')
@click.option('--json', 'json_output', is_flag=True, help='Output structured JSON apply report')
@click.option('--artifacts', type=click.Path(), help='Write apply artifacts to this directory')
@click.option('--quiet', is_flag=True, help='Suppress progress messages')
def destroy(config_path, state_path, provider_name, yes, json_output, artifacts, quiet):
    """Delete every resource recorded in state."""
    try:
        config, store = load_context(config_path, state_path)
        records = store.load()
        if not records:
            click.echo("State is empty, nothing to destroy.")
            return
        
        if not yes:
            click.confirm(f"Destroy {len(records)} resources recorded in {store.path}?", abort=True)
        
        provider = make_provider(config, provider_name)
        with abort_on_interrupt(quiet) as abort:
            report = destroy_resources(store, provider, config=config, abort_event=abort)
        _finish(report, json_output, artifacts, quiet)
    
    except ConvergeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
