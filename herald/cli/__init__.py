"""Herald CLI — command line interface."""

import logging
import sys

import click

from herald import __version__
from herald.main import configure_logging
from .shared import console


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="herald")
@click.option("--debug", is_flag=True, help="Verbose logging")
@click.pass_context
def cli(ctx, debug):
    """Herald — persona message delivery"""
    configure_logging(logging.DEBUG if debug else logging.WARNING)
    if debug:
        logging.getLogger("herald").setLevel(logging.DEBUG)
    if ctx.invoked_subcommand is None:
        _show_help()


def _show_help():
    """Show all available commands grouped by category."""
    console.print(f"[bold]Herald v{__version__}[/bold] — persona message delivery\n")

    groups = {
        "Messages": [
            ("split", "Preview how a text file would be chunked"),
            ("send", "Deliver a message to a channel as a persona"),
        ],
        "Avatars": [
            ("avatar resolve", "Download and cache a persona avatar"),
        ],
        "Data": [
            ("db init", "Initialize the avatar index schema"),
        ],
    }

    for category, commands in groups.items():
        console.print(f"  [bold cyan]{category}[/bold cyan]")
        for name, desc in commands:
            console.print(f"    [bold]herald {name:16s}[/bold] {desc}")
        console.print()

    console.print("[dim]Run 'herald <command> --help' for details on a specific command.[/dim]")


# Import all command modules (registers commands onto cli group)
from . import cmd_split  # noqa: E402, F401
from . import cmd_send  # noqa: E402, F401
from . import cmd_avatar  # noqa: E402, F401
from . import cmd_db  # noqa: E402, F401


@cli.command(name="help", hidden=True)
def help_cmd():
    """Show all available commands."""
    _show_help()


def main():
    """Console-script entry point."""
    try:
        cli(standalone_mode=False)
    except click.UsageError as e:
        click.echo(f"Error: {e.format_message()}", err=True)
        click.echo("Run 'herald help' to list commands.", err=True)
        sys.exit(2)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.Abort:
        click.echo("Interrupted.", err=True)
        sys.exit(130)
