"""Exec and script commands: run things on a remote target."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import orjson
import typer

from sshrun.config.settings import SshrunSettings, get_settings
from sshrun.core.errors import NodeError
from sshrun.core.result import ExecutionResult
from sshrun.core.target import Target
from sshrun.transport.ssh import SSHConnection
from sshrun.transport.tempdir import RemoteTempdir
from sshrun.utils.logging import configure_logging
from sshrun.utils.rich_output import (
    print_header,
    print_node_error,
    print_output,
    print_result_summary,
)

# Exit status used when sshrun itself fails before a command could finish.
ERROR_EXIT = 2


def parse_env(pairs: list[str] | None) -> dict[str, str]:
    """Parse repeated ``KEY=VALUE`` options into a dict.

    Raises:
        typer.BadParameter: If an entry has no ``=`` or an empty name.
    """
    env: dict[str, str] = {}
    for pair in pairs or []:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise typer.BadParameter(f"Expected KEY=VALUE, got: {pair!r}", param_hint="--env")
        env[name] = value
    return env


def build_target(
    uri: str,
    settings: SshrunSettings,
    *,
    password: str | None = None,
    key: str | None = None,
    port: int | None = None,
    run_as: str | None = None,
    sudo_password: str | None = None,
    tty: bool = False,
    tmpdir: str | None = None,
    host_key_check: bool | None = None,
) -> Target:
    """Build a target from CLI arguments, falling back to settings."""
    options: dict[str, Any] = {}
    if key:
        options["private-key"] = key
    if run_as:
        options["run-as"] = run_as
    if sudo_password:
        options["sudo-password"] = sudo_password
    if tty:
        options["tty"] = True
    if tmpdir:
        options["tmpdir"] = tmpdir
    if host_key_check is not None:
        options["host-key-check"] = host_key_check

    target = Target.from_uri(uri, **options)
    if password or port:
        target = Target(
            host=target.host,
            user=target.user,
            password=password or target.password,
            port=port or target.port,
            options=target.options,
        )
    return target.with_defaults(settings.target_defaults())


def exit_status(result: ExecutionResult) -> int:
    """Map a remote exit status onto a process exit code."""
    if result.exit_code is None or result.exit_code < 0:
        return ERROR_EXIT
    return result.exit_code


def _report_result(
    result: ExecutionResult, json_output: bool, summary: bool = False, rich: bool = True
) -> None:
    if json_output:
        typer.echo(orjson.dumps(result.to_dict(), option=orjson.OPT_INDENT_2).decode())
        return
    if not rich:
        typer.echo(result.stdout, nl=False)
        typer.echo(result.stderr, nl=False, err=True)
        if summary:
            typer.echo(f"exit_code={result.exit_code} duration_s={result.duration_s:.2f}")
        return
    print_output(result.stdout, result.stderr)
    if summary:
        print_result_summary(result.to_dict())


def _report_error(exc: NodeError, json_output: bool, rich: bool = True) -> None:
    if json_output:
        typer.echo(orjson.dumps({"error": exc.to_dict()}, option=orjson.OPT_INDENT_2).decode())
        return
    if not rich:
        typer.echo(f"{exc.issue_code}: {exc.message}", err=True)
        return
    print_node_error(exc.to_dict())


def exec_command(
    target: str = typer.Argument(help="Target: 'host', 'user@host' or 'ssh://user@host:port'."),
    command: list[str] = typer.Argument(
        help="Command to run. One word is sent as-is; several are shell-quoted."
    ),
    run_as: str = typer.Option("", "--run-as", "-u", help="Run the command as this user via sudo."),
    sudo_password: str = typer.Option(
        "", "--sudo-password", envvar="SSHRUN_SUDO_PASSWORD", help="Password for sudo."
    ),
    password: str = typer.Option(
        "", "--password", envvar="SSHRUN_PASSWORD", help="Login password."
    ),
    key: str = typer.Option("", "--key", "-i", help="Path to SSH private key file."),
    port: int = typer.Option(0, "--port", "-p", help="SSH port."),
    env: list[str] = typer.Option(None, "--env", "-e", help="Environment variable KEY=VALUE (repeatable)."),
    stdin: str | None = typer.Option(None, "--stdin", help="Text to send on the command's standard input."),
    tty: bool = typer.Option(False, "--tty", "-t", help="Request a pseudo-terminal."),
    host_key_check: bool | None = typer.Option(
        None, "--host-key-check/--no-host-key-check", help="Verify the host key against known_hosts."
    ),
    json_output: bool = typer.Option(False, "--json", help="Print the result as JSON."),
    summary: bool = typer.Option(False, "--summary", help="Print a result summary table."),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="More logging (-vv for debug)."),
    quiet: int = typer.Option(0, "--quiet", "-q", count=True, help="Less logging."),
) -> None:
    """Run a command on a remote host.

    The exit code of the remote command becomes the exit code of sshrun.

    Examples:
        sshrun exec web1 uptime
        sshrun exec deploy@web1 -- ls -la /srv
        sshrun exec web1 --run-as root --sudo-password s3cret -- systemctl restart nginx
        sshrun exec web1 -e GREETING="hi there" 'echo $GREETING'
    """
    settings = get_settings()
    configure_logging(verbose=verbose, quiet=quiet, level=settings.log_level)
    environment = parse_env(env)

    conn_target = build_target(
        target,
        settings,
        password=password or None,
        key=key or None,
        port=port or None,
        run_as=run_as or None,
        sudo_password=sudo_password or None,
        tty=tty,
        host_key_check=host_key_check,
    )
    remote_command: str | list[str] = command[0] if len(command) == 1 else command

    try:
        with SSHConnection(conn_target) as conn:
            result = conn.execute(
                remote_command,
                sudoable=True,
                environment=environment or None,
                stdin=stdin,
            )
    except NodeError as exc:
        _report_error(exc, json_output, settings.rich_output)
        raise typer.Exit(ERROR_EXIT)

    _report_result(result, json_output, summary, settings.rich_output)
    raise typer.Exit(exit_status(result))


def script_command(
    target: str = typer.Argument(help="Target: 'host', 'user@host' or 'ssh://user@host:port'."),
    script: Path = typer.Argument(
        help="Local file to upload and run.", exists=True, dir_okay=False, readable=True
    ),
    args: list[str] = typer.Argument(default=None, help="Arguments for the script."),
    run_as: str = typer.Option("", "--run-as", "-u", help="Run the script as this user via sudo."),
    sudo_password: str = typer.Option(
        "", "--sudo-password", envvar="SSHRUN_SUDO_PASSWORD", help="Password for sudo."
    ),
    password: str = typer.Option(
        "", "--password", envvar="SSHRUN_PASSWORD", help="Login password."
    ),
    key: str = typer.Option("", "--key", "-i", help="Path to SSH private key file."),
    port: int = typer.Option(0, "--port", "-p", help="SSH port."),
    tmpdir: str = typer.Option("", "--tmpdir", help="Remote root for the staging directory."),
    env: list[str] = typer.Option(None, "--env", "-e", help="Environment variable KEY=VALUE (repeatable)."),
    tty: bool = typer.Option(False, "--tty", "-t", help="Request a pseudo-terminal."),
    json_output: bool = typer.Option(False, "--json", help="Print the result as JSON."),
    summary: bool = typer.Option(False, "--summary", help="Print a result summary table."),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="More logging (-vv for debug)."),
    quiet: int = typer.Option(0, "--quiet", "-q", count=True, help="Less logging."),
) -> None:
    """Upload a script to a remote tempdir, run it, and clean up.

    The staging directory is handed to the --run-as user before the
    script runs and is deleted afterwards, whether or not it succeeded.

    Examples:
        sshrun script web1 ./collect_facts.sh
        sshrun script web1 ./install.sh --run-as root --sudo-password s3cret -- --force
    """
    settings = get_settings()
    configure_logging(verbose=verbose, quiet=quiet, level=settings.log_level)
    environment = parse_env(env)

    conn_target = build_target(
        target,
        settings,
        password=password or None,
        key=key or None,
        port=port or None,
        run_as=run_as or None,
        sudo_password=sudo_password or None,
        tty=tty,
        tmpdir=tmpdir or None,
    )
    if summary and settings.rich_output and not json_output:
        print_header(f"{script.name} on {conn_target.uri}")

    try:
        with SSHConnection(conn_target) as conn:

            def run_script(workdir: RemoteTempdir) -> ExecutionResult:
                remote_path = conn.write_remote_executable(workdir, script)
                workdir.chown(conn.run_as)
                return conn.execute(
                    [remote_path, *(args or [])],
                    sudoable=True,
                    environment=environment or None,
                )

            result = conn.with_remote_tempdir(run_script)
    except NodeError as exc:
        _report_error(exc, json_output, settings.rich_output)
        raise typer.Exit(ERROR_EXIT)

    _report_result(result, json_output, summary, settings.rich_output)
    raise typer.Exit(exit_status(result))
