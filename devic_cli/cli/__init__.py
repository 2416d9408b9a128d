"""CLI entry point for devic.

Uses Typer for command routing; each resource group lives in its own module.
"""

from typing import Optional

import typer

from devic_cli import __version__
from devic_cli.cli import agents, assistants, auth, feedback, tool_servers
from devic_cli.cli.helpers import CliState
from devic_cli.log import configure_logging
from devic_cli.output import OutputFormat, OutputRenderer

__all__ = ["app", "main"]

app = typer.Typer(
    name="devic",
    help="CLI for the Devic AI Platform API",
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    output: Optional[OutputFormat] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: json or human (default: human on a TTY, json otherwise)",
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="Override the API base URL for this invocation"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr"),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit",
    ),
) -> None:
    """Manage assistants, agents, tool servers and feedback on the Devic platform."""
    configure_logging(verbose)
    ctx.obj = CliState(renderer=OutputRenderer(output), base_url=base_url)


app.add_typer(auth.app, name="auth")
app.add_typer(assistants.app, name="assistants")
app.add_typer(agents.app, name="agents")
app.add_typer(tool_servers.app, name="tool-servers")
app.add_typer(feedback.app, name="feedback")
