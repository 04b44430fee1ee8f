"""Validate command - check declarations and dependencies without touching state."""

import json
import sys
import click
from ...graph.dependency_graph import build_graph
from ...model.loader import load_declarations
from ...utils.errors import ConvergeError
from ...utils.logging import get_logger
from ..utils import format_error, resolve_file_path

logger = get_logger("cli.validate")


@click.command()
@click.argument('declarations', type=click.Path(exists=False), default=".")
@click.option('--json', 'json_output', is_flag=True, help='Output structured JSON')
def validate(declarations, json_output):
    """Validate resource declarations and their dependency graph."""
    try:
        try:
            path = resolve_file_path(declarations)
        except FileNotFoundError as e:
            click.echo(format_error(str(e)), err=True)
            sys.exit(1)
        
        graph = build_graph(load_declarations(str(path)))
        
        if json_output:
            click.echo(json.dumps({
                "valid": True,
                "resources": len(graph),
                "dependencies": graph.graph.number_of_edges(),
            }, indent=2))
        else:
            click.echo(
                f"Valid: {len(graph)} resources, {graph.graph.number_of_edges()} dependencies"
            )
    
    except ConvergeError as e:
        if json_output:
            click.echo(json.dumps({"valid": False, "error": str(e)}, indent=2))
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
