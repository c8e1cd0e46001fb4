"""ExecutionResult: output and exit status of one remote command."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ExecutionResult:
    """Result of running a command on a target.

    A fresh result is created for every ``execute`` call. Output is
    accumulated chunk by chunk as it streams in and read back as text.

    Attributes:
        command: The command line that was sent to the remote shell.
        exit_code: Remote exit status, or None until it has been delivered.
        duration_s: Wall-clock duration in seconds.
    """

    command: str = ""
    exit_code: int | None = None
    duration_s: float = 0.0
    _stdout: list[str] = field(default_factory=list, init=False, repr=False)
    _stderr: list[str] = field(default_factory=list, init=False, repr=False)

    def append_stdout(self, data: str) -> None:
        self._stdout.append(data)

    def append_stderr(self, data: str) -> None:
        self._stderr.append(data)

    @property
    def stdout(self) -> str:
        """Captured standard output, in arrival order."""
        return "".join(self._stdout)

    @property
    def stderr(self) -> str:
        """Captured standard error, in arrival order."""
        return "".join(self._stderr)

    @property
    def success(self) -> bool:
        """Return True if the command exited with code 0."""
        return self.exit_code == 0

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict."""
        return {
            "command": self.command,
            "exit_code": self.exit_code,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "duration_s": self.duration_s,
        }
