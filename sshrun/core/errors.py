"""Typed errors raised by sshrun transports.

Every failure that crosses the public API is one of three kinds, each
carrying a stable ``issue_code`` that callers can branch on for retry and
reporting decisions:

- ConnectError: AUTH_ERROR, HOST_KEY_ERROR, CONNECT_ERROR, EXEC_ERROR
- FileError: WRITE_ERROR, TEMPDIR_ERROR, CHMOD_ERROR, CHOWN_ERROR
- EscalateError: NO_PASSWORD, SUDO_DENIED, BAD_PASSWORD

A non-zero exit status of a remote command is never an error.
"""

from __future__ import annotations

from typing import Any, ClassVar


class NodeError(Exception):
    """Base class for errors reported against a remote target.

    Attributes:
        message: Human-readable description, usually naming the target.
        issue_code: Stable machine-readable code.
    """

    kind: ClassVar[str] = "sshrun/node-error"
    codes: ClassVar[frozenset[str]] = frozenset()

    def __init__(self, message: str, issue_code: str) -> None:
        if self.codes and issue_code not in self.codes:
            raise ValueError(
                f"{type(self).__name__} does not accept issue code '{issue_code}'. "
                f"Expected one of: {sorted(self.codes)}"
            )
        super().__init__(message)
        self.message = message
        self.issue_code = issue_code

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict for JSON reporting."""
        return {
            "kind": self.kind,
            "issue_code": self.issue_code,
            "msg": self.message,
        }

    def __str__(self) -> str:
        return self.message


class ConnectError(NodeError):
    """Session could not be established, or the remote refused a command."""

    kind = "sshrun/connect-error"
    codes = frozenset({"AUTH_ERROR", "HOST_KEY_ERROR", "CONNECT_ERROR", "EXEC_ERROR"})


class FileError(NodeError):
    """A remote file or directory operation failed."""

    kind = "sshrun/file-error"
    codes = frozenset({"WRITE_ERROR", "TEMPDIR_ERROR", "CHMOD_ERROR", "CHOWN_ERROR"})


class EscalateError(NodeError):
    """Privilege escalation through sudo failed."""

    kind = "sshrun/escalate-error"
    codes = frozenset({"NO_PASSWORD", "SUDO_DENIED", "BAD_PASSWORD"})
