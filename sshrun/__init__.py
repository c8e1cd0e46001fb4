"""sshrun: remote command execution over SSH."""

from sshrun.__version__ import __version__
from sshrun.core.errors import ConnectError, EscalateError, FileError, NodeError
from sshrun.core.result import ExecutionResult
from sshrun.core.target import Target
from sshrun.transport.ssh import SSHConnection
from sshrun.transport.tempdir import RemoteTempdir

__all__ = [
    "__version__",
    "ConnectError",
    "EscalateError",
    "ExecutionResult",
    "FileError",
    "NodeError",
    "RemoteTempdir",
    "SSHConnection",
    "Target",
]
