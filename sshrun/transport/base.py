"""Base connection interface for remote command transports."""

from __future__ import annotations

import abc
import logging
import os
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any, TypeVar

from sshrun.core.result import ExecutionResult
from sshrun.core.target import Target
from sshrun.transport.tempdir import RemoteTempdir

T = TypeVar("T")


class BaseConnection(abc.ABC):
    """Abstract base class for a session with one target.

    A connection runs one command at a time and is not safe to share
    between threads; parallel work across targets uses one connection
    per target.

    Attributes:
        target: The target this connection talks to.
        user: The user the session authenticates as.
        logger: Per-target logger (``sshrun.<host>``).
    """

    def __init__(self, target: Target, user: str) -> None:
        self.target = target
        self.user = user
        self.logger = logging.getLogger(f"sshrun.{target.host}")
        self._run_as: str | None = None

    # --- Transport-specific operations ---

    @abc.abstractmethod
    def connect(self) -> None:
        """Open the session.

        Raises:
            ConnectError: If the session cannot be established.
        """
        ...

    @abc.abstractmethod
    def disconnect(self) -> None:
        """Close the session. Safe to call more than once; never raises."""
        ...

    @abc.abstractmethod
    def execute(
        self,
        command: str | Sequence[str],
        *,
        sudoable: bool = False,
        run_as: str | None = None,
        environment: Mapping[str, str] | None = None,
        stdin: str | bytes | None = None,
    ) -> ExecutionResult:
        """Run a command on the target and wait for it to finish.

        Args:
            command: A pre-escaped command string, or argument tokens to quote.
            sudoable: Whether the command may be wrapped in sudo.
            run_as: User to run as for this call only.
            environment: Variables to set for the command.
            stdin: Data written to the command's standard input.

        Returns:
            ExecutionResult. A non-zero exit status is not an error.
        """
        ...

    @abc.abstractmethod
    def make_tempdir(self) -> RemoteTempdir:
        """Create a private directory on the target.

        Raises:
            FileError: TEMPDIR_ERROR if the directory cannot be created.
        """
        ...

    @abc.abstractmethod
    def write_remote_file(self, source: str | os.PathLike[str], destination: str) -> None:
        """Upload a local file.

        Raises:
            FileError: WRITE_ERROR if the upload fails.
        """
        ...

    @abc.abstractmethod
    def make_executable(self, path: str) -> None:
        """Mark a remote file executable by its owner.

        Raises:
            FileError: CHMOD_ERROR if chmod exits non-zero.
        """
        ...

    # --- Run-as override ---

    @property
    def run_as(self) -> str | None:
        """User that sudoable commands run as when no per-call user is given.

        A ``running_as`` block takes precedence over the target's
        ``run-as`` option.
        """
        return self._run_as or self.target.option("run-as") or None

    @run_as.setter
    def run_as(self, user: str | None) -> None:
        self._run_as = user

    @contextmanager
    def running_as(self, user: str) -> Iterator[None]:
        """Run as ``user`` for the duration of the block."""
        previous = self._run_as
        self._run_as = user
        try:
            yield
        finally:
            self._run_as = previous

    # --- Tempdir helpers ---

    @contextmanager
    def remote_tempdir(self) -> Iterator[RemoteTempdir]:
        """Create a tempdir for the block and delete it afterwards."""
        tmpdir = self.make_tempdir()
        try:
            yield tmpdir
        finally:
            tmpdir.delete()

    def with_remote_tempdir(self, work: Callable[[RemoteTempdir], T]) -> T:
        """Call ``work`` with a fresh tempdir, deleting it however ``work`` exits."""
        with self.remote_tempdir() as tmpdir:
            return work(tmpdir)

    def write_remote_executable(
        self,
        directory: str | RemoteTempdir,
        file: str | os.PathLike[str],
        filename: str | None = None,
    ) -> str:
        """Upload ``file`` into ``directory`` and make it executable.

        Returns:
            The remote path of the uploaded file.
        """
        filename = filename or os.path.basename(os.fspath(file))
        remote_path = f"{directory}/{filename}"
        self.write_remote_file(file, remote_path)
        self.make_executable(remote_path)
        return remote_path

    # --- Context manager ---

    def __enter__(self) -> BaseConnection:
        self.connect()
        return self

    def __exit__(self, *args: Any) -> None:
        self.disconnect()
