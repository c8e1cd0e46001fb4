"""Logging setup for the sshrun CLI.

Library modules only create loggers; handlers are installed here, once,
by the CLI. Records are rendered through rich on stderr.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

VERBOSITY_TO_LEVEL = {
    -1: logging.ERROR,
    0: logging.WARNING,
    1: logging.INFO,
    2: logging.DEBUG,
}


def level_for_counts(verbose: int = 0, quiet: int = 0, default: int = logging.WARNING) -> int:
    """Map -v/-q counts onto a log level; no flags means ``default``."""
    if not verbose and not quiet:
        return default
    delta = max(-1, min(2, verbose - quiet))
    return VERBOSITY_TO_LEVEL[delta]


def configure_logging(
    *,
    verbose: int = 0,
    quiet: int = 0,
    level: str | int = logging.WARNING,
    console: Console | None = None,
) -> None:
    """Configure root logging for CLI usage."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level_for_counts(verbose, quiet, default=level))
