"""Rich console output utilities for the sshrun CLI."""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

SSHRUN_THEME = Theme({
    "info": "cyan",
    "success": "green",
    "warning": "yellow",
    "error": "red bold",
    "code": "magenta",
    "header": "bold bright_white",
})

console = Console(theme=SSHRUN_THEME)
err_console = Console(theme=SSHRUN_THEME, stderr=True)


def print_header(text: str) -> None:
    """Print a styled header."""
    console.print()
    console.print(Panel(Text(text, style="header"), border_style="bright_blue"))


def print_success(text: str) -> None:
    """Print a success message."""
    console.print(f"[success]{text}[/success]")


def print_info(text: str) -> None:
    """Print an info message."""
    console.print(f"[info]{text}[/info]")


def print_error(text: str) -> None:
    """Print an error message to stderr."""
    err_console.print(f"[error]{text}[/error]", highlight=False)


def print_node_error(error_dict: dict[str, Any]) -> None:
    """Print a serialized NodeError as ``ISSUE_CODE: message``.

    Args:
        error_dict: Output of ``NodeError.to_dict()``.
    """
    err_console.print(
        Text.assemble(
            (error_dict.get("issue_code", "ERROR"), "code"),
            ": ",
            (error_dict.get("msg", ""), "error"),
        )
    )


def print_output(stdout: str, stderr: str) -> None:
    """Echo captured remote output verbatim, stdout then stderr."""
    if stdout:
        console.out(stdout, end="", highlight=False)
    if stderr:
        err_console.out(stderr, end="", highlight=False)


def print_result_summary(result_dict: dict[str, Any]) -> None:
    """Print a one-row summary table for an ExecutionResult.

    Args:
        result_dict: Output of ``ExecutionResult.to_dict()``.
    """
    exit_code = result_dict.get("exit_code")
    style = "success" if exit_code == 0 else "error"

    table = Table(show_header=True)
    table.add_column("Command", style="cyan", max_width=60)
    table.add_column("Exit", justify="right")
    table.add_column("Duration", style="dim", justify="right")

    command = result_dict.get("command", "")
    if len(command) > 60:
        command = command[:57] + "..."
    table.add_row(
        command,
        f"[{style}]{exit_code}[/{style}]",
        f"{result_dict.get('duration_s', 0):.2f}s",
    )
    err_console.print(table)
