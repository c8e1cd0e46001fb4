"""Shared fixtures: a scripted paramiko channel and a connected SSHConnection."""

from __future__ import annotations

import threading
from collections import deque
from unittest.mock import MagicMock

import paramiko
import pytest

from sshrun.core.target import Target
from sshrun.transport.agent import StaticAgentProbe
from sshrun.transport.ssh import SSHConnection


class FakeChannel:
    """Replays stdout/stderr chunks in order, then reports an exit status.

    ``events`` is a list of ``("stdout" | "stderr", bytes)`` tuples. A chunk
    is only offered once every chunk before it has been read, so arrival
    order across both streams is preserved.
    """

    def __init__(self, events=(), exit_code=0, exec_fails=False):
        self.events = deque(events)
        self.exit_code = exit_code
        self.exec_fails = exec_fails
        self.sent: list[bytes] = []
        self.command: str | None = None
        self.pty_requested = False
        self.write_shut = False
        self.closed = False
        self.status_event = threading.Event()
        self.status_event.set()

    def get_pty(self):
        self.pty_requested = True

    def exec_command(self, command):
        if self.exec_fails:
            raise paramiko.SSHException("Channel closed.")
        self.command = command

    def _next_is(self, stream):
        return bool(self.events) and self.events[0][0] == stream

    def recv_ready(self):
        return self._next_is("stdout")

    def recv_stderr_ready(self):
        return self._next_is("stderr")

    def recv(self, size):
        return self.events.popleft()[1]

    def recv_stderr(self, size):
        return self.events.popleft()[1]

    def exit_status_ready(self):
        return not self.events

    def recv_exit_status(self):
        return self.exit_code

    def sendall(self, data):
        self.sent.append(data)

    def shutdown_write(self):
        self.write_shut = True

    def close(self):
        self.closed = True


class FakeSession:
    """Hands out one FakeChannel per execute call and records the commands."""

    def __init__(self):
        self.channels: list[FakeChannel] = []
        self.scripts: deque = deque()
        self.client = MagicMock(spec=paramiko.SSHClient)
        self.transport = MagicMock(spec=paramiko.Transport)
        self.transport.is_active.return_value = True
        self.transport.open_session.side_effect = self._open_session
        self.client.get_transport.return_value = self.transport

    def queue(self, *channels: FakeChannel) -> None:
        self.scripts.extend(channels)

    def _open_session(self):
        channel = self.scripts.popleft() if self.scripts else FakeChannel()
        self.channels.append(channel)
        return channel

    @property
    def commands(self) -> list[str | None]:
        return [channel.command for channel in self.channels]


@pytest.fixture
def target():
    return Target(host="node1.example.com", user="alice", options={"sudo-password": "s3cret"})


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def make_conn(session):
    """Build a connected SSHConnection over the fake session."""

    def factory(target: Target) -> SSHConnection:
        conn = SSHConnection(
            target,
            agent_probe=StaticAgentProbe(True),
            client_factory=lambda: session.client,
        )
        conn.connect()
        return conn

    return factory


@pytest.fixture
def conn(make_conn, target):
    return make_conn(target)
