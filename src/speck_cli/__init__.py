"""
Speck CLI - spec-driven workflow tooling and upstream transformation staging.

Usage:
    speck transform init v2.1.0
    speck transform commit .speck/.transform-staging/v2.1.0
    speck transform status
"""

import logging

import typer
from rich.console import Console

from speck_cli.cli.commands.transform import app as transform_app

__version__ = "0.1.0"

console = Console()

app = typer.Typer(
    name="speck",
    help="Spec-driven workflow tooling for AI coding assistants",
    add_completion=False,
    no_args_is_help=True,
)

app.add_typer(transform_app, name="transform")


@app.callback()
def callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log staging operations to stderr"),
):
    """Configure logging before a subcommand runs."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(levelname)s %(name)s: %(message)s",
        )


@app.command()
def version():
    """Show the installed speck version."""
    console.print(f"speck {__version__}")


def main():
    app()


if __name__ == "__main__":
    main()
