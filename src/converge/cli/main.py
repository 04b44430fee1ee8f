"""Main CLI entry point for converge."""

import logging
import click
from .. import __version__
from ..utils.logging import setup_logging
from .commands.apply import apply, destroy
from .commands.graph import graph
from .commands.plan import plan
from .commands.refresh import refresh
from .commands.state import state
from .commands.validate import validate
from .commands.version import version


@click.group()
@click.version_option(version=__version__, prog_name="converge")
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
def cli(verbose):
    """Converge - declarative infrastructure reconciliation engine."""
    if verbose:
        setup_logging(level=logging.DEBUG)


cli.add_command(validate)
cli.add_command(graph)
cli.add_command(plan)
cli.add_command(apply)
cli.add_command(destroy)
cli.add_command(refresh)
cli.add_command(state)
cli.add_command(version)


if __name__ == '__main__':
    cli()
