"""Plan command - show what apply would change."""

import sys
from pathlib import Path
import click
from ... import plan_resources
from ...presentation.formatter import format_plan
from ...report.markdown import generate_markdown
from ...utils.errors import ConvergeError
from ...utils.logging import get_logger
from ..utils import format_error, load_context, make_provider, resolve_file_path, to_json, write_output

logger = get_logger("cli.plan")


@click.command()
@click.argument('declarations', type=click.Path(exists=False), default=".")
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True), help='Path to config YAML file')
@click.option('--state', 'state_path', type=click.Path(), help='Path to state file (overrides config)')
@click.option('--provider', 'provider_name', help='Provider name or module:Factory (used with --refresh)')
@click.option('--refresh', is_flag=True, help='Refresh state from the provider before planning')
@click.option('--json', 'json_output', is_flag=True, help='Output structured JSON plan report')
@click.option('--output', '-o', type=click.Path(), help='Save output to file')
@click.option('--markdown', type=click.Path(), help='Also write a markdown plan report to this path')
@click.option('--show-unchanged', is_flag=True, help='Include resources with no changes')
@click.option('--detailed-exitcode', is_flag=True, help='Exit 2 when the plan has changes')
@click.option('--quiet', is_flag=True, help='Suppress progress messages')
def plan(declarations, config_path, state_path, provider_name, refresh, json_output, output, markdown,
         show_unchanged, detailed_exitcode, quiet):
    """Compute the changes needed to reach the declared state."""
    try:
        try:
            path = resolve_file_path(declarations)
        except FileNotFoundError as e:
            click.echo(format_error(str(e)), err=True)
            sys.exit(1)
        
        config, store = load_context(config_path, state_path)
        provider = make_provider(config, provider_name) if refresh else None
        
        if not quiet:
            click.echo(f"Planning {path} against state {store.path}", err=True)
        
        report = plan_resources(str(path), store, config=config, provider=provider, refresh=refresh).to_report()
        
        if json_output:
            output_text = to_json(report)
        else:
            output_text = format_plan(report, show_unchanged=show_unchanged)
        write_output(output_text, output, quiet)
        
        if markdown:
            generate_markdown(Path(markdown), plan_report=report)
            if not quiet:
                click.echo(f"Markdown report saved to: {markdown}", err=True)
        
        if detailed_exitcode and report.has_changes:
            sys.exit(2)
    
    except ConvergeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Plan failed: {e}"), err=True)
        sys.exit(1)
