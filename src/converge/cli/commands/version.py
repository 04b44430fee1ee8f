"""Version command."""

import sys
import click
from ... import __version__


@click.command()
def version():
    """Show version information."""
    click.echo(f"converge {__version__}")
    click.echo(f"Python {sys.version.split()[0]}")
