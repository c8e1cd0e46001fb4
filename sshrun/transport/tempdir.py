"""RemoteTempdir: a disposable directory on the target."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import paramiko

from sshrun.core.errors import FileError, NodeError

if TYPE_CHECKING:
    from sshrun.transport.base import BaseConnection


class RemoteTempdir:
    """A directory created on the target for staging files.

    The path never changes once created. The directory starts out owned
    by the connection's login user; ``chown`` hands it to another user
    and later commands (including ``delete``) run as that owner.
    """

    def __init__(self, conn: BaseConnection, path: str) -> None:
        self._conn = conn
        self._path = path
        self._owner = conn.user
        self._logger = conn.logger

    @property
    def path(self) -> str:
        return self._path

    @property
    def owner(self) -> str:
        return self._owner

    def chown(self, owner: str | None) -> None:
        """Recursively change the owner of the directory, as root.

        No-op if ``owner`` is None or already owns the directory.

        Raises:
            FileError: CHOWN_ERROR if the remote chown exits non-zero.
        """
        if owner is None or owner == self._owner:
            return

        result = self._conn.execute(
            ["chown", "-R", f"{owner}:", self._path],
            sudoable=True,
            run_as="root",
        )
        if result.exit_code != 0:
            raise FileError(
                f"Could not change owner of '{self._path}' to {owner}: {result.stderr}",
                "CHOWN_ERROR",
            )
        self._owner = owner

    def delete(self) -> None:
        """Remove the directory. Failures are logged, never raised."""
        try:
            result = self._conn.execute(
                ["rm", "-rf", self._path],
                sudoable=True,
                run_as=self._owner,
            )
        except (NodeError, paramiko.SSHException, OSError) as exc:
            self._logger.warning("Failed to clean up tempdir '%s': %s", self._path, exc)
            return

        if result.exit_code != 0:
            self._logger.warning("Failed to clean up tempdir '%s': %s", self._path, result.stderr)

    def __str__(self) -> str:
        return self._path

    def __repr__(self) -> str:
        return f"RemoteTempdir({self._path!r}, owner={self._owner!r})"
