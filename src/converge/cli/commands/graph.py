"""Graph command - show the dependency graph and wave layout."""

import json
import sys
import click
from ...graph.dependency_graph import build_graph
from ...model.loader import load_declarations
from ...planner.planner import layer_waves
from ...utils.errors import ConvergeError
from ...utils.logging import get_logger
from ..utils import format_error, resolve_file_path

logger = get_logger("cli.graph")


@click.command()
@click.argument('declarations', type=click.Path(exists=False), default=".")
@click.option('--format', 'output_format', type=click.Choice(['waves', 'dot', 'json']), default='waves',
              help='Output format')
@click.option('--resource', 'resource_id', default=None,
              help='Show everything a resource depends on and everything that depends on it')
def graph(declarations, output_format, resource_id):
    """Show the dependency graph of the declared resources."""
    try:
        try:
            path = resolve_file_path(declarations)
        except FileNotFoundError as e:
            click.echo(format_error(str(e)), err=True)
            sys.exit(1)
        
        dependency_graph = build_graph(load_declarations(str(path)))
        
        if resource_id is not None:
            _show_resource(dependency_graph, resource_id, output_format)
            return
        
        if output_format == 'dot':
            click.echo(dependency_graph.to_dot())
            return
        
        layer = layer_waves(dependency_graph) if len(dependency_graph) else {}
        waves = []
        for index in range(max(layer.values(), default=-1) + 1):
            waves.append(sorted(r for r, l in layer.items() if l == index))
        
        if output_format == 'json':
            click.echo(json.dumps({
                "resources": {
                    r.id: sorted(dependency_graph.dependencies_of(r.id))
                    for r in dependency_graph.get_all_resources()
                },
                "waves": waves,
            }, indent=2))
            return
        
        for index, members in enumerate(waves):
            click.echo(f"Wave {index}:")
            for resource_id in members:
                deps = sorted(dependency_graph.dependencies_of(resource_id))
                suffix = f" <- {', '.join(deps)}" if deps else ""
                click.echo(f"  {resource_id}{suffix}")
    
    except ConvergeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)


def _show_resource(dependency_graph, resource_id, output_format):
    """Print the transitive dependencies and dependents of one resource."""
    if resource_id not in dependency_graph:
        click.echo(format_error(f"Unknown resource '{resource_id}'"), err=True)
        sys.exit(1)
    
    upstream = sorted(dependency_graph.transitive_dependencies(resource_id))
    downstream = sorted(dependency_graph.transitive_dependents(resource_id))
    
    if output_format == 'json':
        click.echo(json.dumps({
            "resource": resource_id,
            "depends_on": upstream,
            "required_by": downstream,
        }, indent=2))
        return
    
    click.echo(f"{resource_id} ({dependency_graph.get_resource(resource_id).type})")
    click.echo(f"  depends on:  {', '.join(upstream) or '-'}")
    click.echo(f"  required by: {', '.join(downstream) or '-'}")
