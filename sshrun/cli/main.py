"""sshrun CLI entry point.

The main Typer application that registers all subcommands.
"""

from __future__ import annotations

import typer

from sshrun.__version__ import __version__

app = typer.Typer(
    name="sshrun",
    help="Run commands on remote hosts over SSH.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"sshrun {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """sshrun: run commands on remote hosts, with sudo and remote tempdirs."""
    pass


# Register subcommands
from sshrun.cli.config_cmd import config_app  # noqa: E402
from sshrun.cli.exec_cmd import exec_command, script_command  # noqa: E402

app.command("exec")(exec_command)
app.command("script")(script_command)
app.add_typer(config_app, name="config", help="Manage sshrun configuration.")
