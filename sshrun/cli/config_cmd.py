"""Config command: manage sshrun settings."""

from __future__ import annotations

import typer

from sshrun.config.settings import SshrunSettings
from sshrun.utils.rich_output import (
    console,
    print_error,
    print_info,
    print_success,
)

config_app = typer.Typer(no_args_is_help=True)


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Config key (e.g. 'connect_timeout')."),
    value: str = typer.Argument(help="Config value."),
) -> None:
    """Set a configuration value.

    Saves to .sshrun/config.json in the current directory.

    Examples:
        sshrun config set connect_timeout 30
        sshrun config set tmpdir /var/tmp
        sshrun config set host_key_check true
    """
    from sshrun.config.settings import save_config

    known_keys = set(SshrunSettings.model_fields.keys())
    if key not in known_keys:
        print_error(
            f"Unknown config key '{key}'. "
            f"Known keys: {', '.join(sorted(known_keys))}"
        )
        raise typer.Exit(1)

    path = save_config(key, value)
    print_success(f"Set {key} = {value}")
    print_info(f"Saved to {path}")


@config_app.command("show")
def config_show() -> None:
    """Show current configuration.

    Values that differ from the built-in default are highlighted.

    Examples:
        sshrun config show
    """
    from rich.table import Table

    from sshrun.config.settings import get_settings

    settings = get_settings()

    table = Table(title="sshrun Configuration", show_header=True)
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="bright_white")
    table.add_column("Default", style="dim")

    defaults = SshrunSettings()

    for field_name in SshrunSettings.model_fields:
        value = getattr(settings, field_name)
        default = getattr(defaults, field_name)
        style = "dim" if value == default else "bright_white"
        table.add_row(field_name, f"[{style}]{value}[/{style}]", str(default))

    console.print(table)


@config_app.command("path")
def config_path() -> None:
    """Show the configuration file path.

    Examples:
        sshrun config path
    """
    from sshrun.config.settings import get_config_dir

    config_dir = get_config_dir()
    config_file = config_dir / "config.json"
    print_info(f"Config directory: {config_dir}")
    print_info(f"Config file: {config_file}")
    if config_file.is_file():
        print_success("Config file exists.")
    else:
        print_info("Config file does not exist yet. Run `sshrun config set` to create it.")
