"""SSH connection using paramiko.

One ``SSHConnection`` owns one paramiko session to one target and runs
commands on it one at a time. Output is pumped off the channel as it
arrives so that sudo password prompts can be answered mid-stream.

Authentication order:
1. Explicit credentials on the target (``private-key`` option and/or password)
2. SSH agent, if one is reachable on this machine
3. Default key files (~/.ssh/id_rsa, id_ed25519, etc.)
"""

from __future__ import annotations

import codecs
import getpass
import io
import logging
import os
import shlex
import time
import uuid
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any, cast

import paramiko

from sshrun.core.errors import ConnectError, FileError
from sshrun.core.result import ExecutionResult
from sshrun.core.target import Target
from sshrun.transport.agent import AgentProbe, default_agent_probe
from sshrun.transport.base import BaseConnection
from sshrun.transport.escalation import EscalationDetector, sudo_prefix
from sshrun.transport.tempdir import RemoteTempdir

CHUNK_SIZE = 32768
POLL_INTERVAL = 0.05

_KEY_CLASSES: tuple[type[paramiko.PKey], ...] = (
    paramiko.Ed25519Key,
    paramiko.ECDSAKey,
    paramiko.RSAKey,
)


class UnknownHostKeyError(paramiko.SSHException):
    """The host presented a key that is not in known_hosts."""


class StrictHostKeyPolicy(paramiko.MissingHostKeyPolicy):
    """Reject hosts missing from known_hosts."""

    def missing_host_key(self, client: paramiko.SSHClient, hostname: str, key: paramiko.PKey) -> None:
        raise UnknownHostKeyError(
            f"Server {hostname!r} ({key.get_name()}) not found in known_hosts"
        )


def classify_connect_error(exc: BaseException, target: Target) -> ConnectError:
    """Map a failure raised while connecting onto a ConnectError.

    Authentication is checked first, then host key problems, then
    timeouts; anything else is a generic connection failure.
    """
    if isinstance(exc, paramiko.AuthenticationException):
        return ConnectError(f"Authentication failed for {target.uri}: {exc}", "AUTH_ERROR")
    if isinstance(exc, (paramiko.BadHostKeyException, UnknownHostKeyError)):
        return ConnectError(
            f"Host key verification failed for {target.uri}: {exc}",
            "HOST_KEY_ERROR",
        )
    if isinstance(exc, TimeoutError):
        return ConnectError(
            f"Timeout after {target.option('connect-timeout')} seconds connecting to {target.uri}",
            "CONNECT_ERROR",
        )
    return ConnectError(f"Failed to connect to {target.uri}: {exc}", "CONNECT_ERROR")


def load_key_data(key_data: str) -> paramiko.PKey:
    """Parse inline private key material.

    Raises:
        paramiko.AuthenticationException: If no supported key type parses it.
    """
    for key_class in _KEY_CLASSES:
        try:
            return key_class.from_private_key(io.StringIO(key_data))
        except (paramiko.SSHException, ValueError):
            continue
    raise paramiko.AuthenticationException("Unsupported or invalid private key data")


def resolve_user(target: Target, ssh_config_path: str | os.PathLike[str] | None = None) -> str:
    """Return the login user: target, then ~/.ssh/config, then local login."""
    if target.user:
        return target.user

    path = Path(ssh_config_path) if ssh_config_path else Path.home() / ".ssh" / "config"
    if path.is_file():
        config = paramiko.SSHConfig.from_path(str(path))
        user = config.lookup(target.host).get("user")
        if user:
            return str(user)
    return getpass.getuser()


class SSHConnection(BaseConnection):
    """Execute commands and manage files on a remote machine via SSH.

    Usage:
        with SSHConnection(Target.from_uri("ssh://deploy@web1")) as conn:
            result = conn.execute(["systemctl", "restart", "nginx"], sudoable=True, run_as="root")
    """

    def __init__(
        self,
        target: Target,
        *,
        agent_probe: AgentProbe | None = None,
        client_factory: Callable[[], paramiko.SSHClient] = paramiko.SSHClient,
        ssh_config_path: str | os.PathLike[str] | None = None,
    ) -> None:
        """Initialize the connection. Nothing is opened until ``connect``.

        Args:
            target: Host and options to connect with.
            agent_probe: Agent availability check. Defaults to the platform probe.
            client_factory: Builds the paramiko client.
            ssh_config_path: OpenSSH config consulted for the login user.
        """
        super().__init__(target, resolve_user(target, ssh_config_path))
        self._agent_probe = agent_probe or default_agent_probe()
        self._client_factory = client_factory
        self._client: paramiko.SSHClient | None = None
        self._sftp: paramiko.SFTPClient | None = None

    @property
    def connected(self) -> bool:
        """Return True while the session is open."""
        if self._client is None:
            return False
        transport = self._client.get_transport()
        return transport is not None and transport.is_active()

    def _connect_options(self) -> dict[str, Any]:
        """Build keyword arguments for ``SSHClient.connect``."""
        target = self.target
        options: dict[str, Any] = {
            "hostname": target.host,
            "username": self.user,
        }
        if target.port:
            options["port"] = int(target.port)

        key = target.option("private-key")
        if isinstance(key, str):
            options["key_filename"] = os.path.expanduser(key)
        elif isinstance(key, Mapping):
            options["pkey"] = load_key_data(key["key-data"])
        if target.password:
            options["password"] = target.password

        if key or target.password:
            options["allow_agent"] = False
            options["look_for_keys"] = False
        else:
            options["look_for_keys"] = True
            options["allow_agent"] = self._agent_probe.available()
            if not options["allow_agent"]:
                self.logger.debug("Disabling agent use: %s", self._agent_probe.reason)

        timeout = target.option("connect-timeout")
        if timeout:
            options["timeout"] = float(timeout)
        return options

    def connect(self) -> None:
        """Open the SSH session.

        Host keys are checked against the system known_hosts only when the
        target sets ``host-key-check``; otherwise any key is accepted. An open
        session is reused; a dead one is closed first.

        Raises:
            ConnectError: AUTH_ERROR, HOST_KEY_ERROR or CONNECT_ERROR.
        """
        if self.connected:
            return
        self.disconnect()
        logging.getLogger("paramiko").setLevel(logging.WARNING)

        client = self._client_factory()
        try:
            if self.target.option("host-key-check"):
                client.load_system_host_keys()
                client.set_missing_host_key_policy(StrictHostKeyPolicy())
            else:
                client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
            client.connect(**self._connect_options())
        except Exception as exc:
            client.close()
            raise classify_connect_error(exc, self.target) from exc

        self._client = client
        self.logger.debug("Opened session")

    def disconnect(self) -> None:
        """Close SFTP and SSH sessions, if open."""
        client, self._client = self._client, None
        sftp, self._sftp = self._sftp, None
        if client is None:
            return

        transport = client.get_transport()
        was_active = transport is not None and transport.is_active()
        try:
            if sftp is not None:
                sftp.close()
            client.close()
        except (paramiko.SSHException, OSError) as exc:
            self.logger.debug("Error while closing session: %s", exc)
            return
        if was_active:
            self.logger.debug("Closed session")

    def _active_transport(self) -> paramiko.Transport:
        transport = self._client.get_transport() if self._client is not None else None
        if transport is None or not transport.is_active():
            raise ConnectError(f"Connection to {self.target.uri} is not connected", "CONNECT_ERROR")
        return transport

    def build_command(
        self,
        command: str | Sequence[str],
        *,
        run_as: str | None = None,
        environment: Mapping[str, str] | None = None,
    ) -> str:
        """Serialize a command, wrapping it in sudo when ``run_as`` is given."""
        command_str = command if isinstance(command, str) else shlex.join(command)
        if run_as:
            command_str = f"{sudo_prefix(run_as)} {command_str}"

        # shlex.join would quote the "=" as well, so only the values are escaped.
        if environment:
            env_decls = " ".join(
                f"{name}={shlex.quote(str(value))}" for name, value in environment.items()
            )
            command_str = f"{env_decls} {command_str}"
        return command_str

    def execute(
        self,
        command: str | Sequence[str],
        *,
        sudoable: bool = False,
        run_as: str | None = None,
        environment: Mapping[str, str] | None = None,
        stdin: str | bytes | None = None,
    ) -> ExecutionResult:
        """Run a command on the remote host via SSH.

        The command is wrapped in sudo when it is sudoable and the effective
        run-as user (``run_as`` argument, then ``running_as`` block, then the
        target's ``run-as`` option) differs from the login user.

        Args:
            command: Pre-escaped command string, or tokens to shell-quote.
            sudoable: Whether the command may be run through sudo.
            run_as: User to run as for this call only.
            environment: Variables assigned in front of the command; merged
                over the target's ``environment`` option.
            stdin: Data sent to the command before end-of-input is signalled.

        Returns:
            ExecutionResult with captured output and exit status.

        Raises:
            ConnectError: CONNECT_ERROR if not connected, EXEC_ERROR if the
                remote refused to start the command.
            EscalateError: If sudo asks for a password that is missing or
                rejects the user or password.
        """
        transport = self._active_transport()

        run_as = run_as or self.run_as
        use_sudo = bool(sudoable and run_as and run_as != self.user)
        env = {**(self.target.option("environment") or {}), **(environment or {})}
        command_str = self.build_command(
            command,
            run_as=run_as if use_sudo else None,
            environment=env,
        )
        self.logger.debug("Executing: %s", command_str)

        detector = None
        if use_sudo:
            detector = EscalationDetector(
                user=self.user,
                password=self.target.option("sudo-password"),
                target_uri=self.target.uri,
                logger=self.logger,
            )

        result = ExecutionResult(command=command_str)
        start = time.monotonic()
        channel: paramiko.Channel | None = None
        try:
            try:
                channel = transport.open_session()
                if self.target.option("tty"):
                    channel.get_pty()
                channel.exec_command(command_str)
            except paramiko.SSHException as exc:
                raise ConnectError(
                    f"Could not execute command: {command_str!r}",
                    "EXEC_ERROR",
                ) from exc

            if stdin is not None:
                channel.sendall(stdin.encode() if isinstance(stdin, str) else stdin)
                channel.shutdown_write()

            result.exit_code = self._pump(channel, result, detector)
        finally:
            if channel is not None:
                channel.close()
        result.duration_s = time.monotonic() - start

        if result.exit_code == 0:
            self.logger.debug("Command returned successfully")
        elif result.exit_code is None:
            self.logger.info("Command ended without an exit status")
        else:
            self.logger.info("Command failed with exit code %s", result.exit_code)
        return result

    def _pump(
        self,
        channel: paramiko.Channel,
        result: ExecutionResult,
        detector: EscalationDetector | None,
    ) -> int | None:
        """Route channel output into ``result`` until the command exits.

        Returns:
            The remote exit status, or None if none was sent.
        """
        streams = {
            "stdout": (codecs.getincrementaldecoder("utf-8")(errors="replace"), result.append_stdout),
            "stderr": (codecs.getincrementaldecoder("utf-8")(errors="replace"), result.append_stderr),
        }

        def route(name: str, data: bytes, final: bool = False) -> None:
            decoder, append = streams[name]
            text = decoder.decode(data, final)
            if not text:
                return
            self.logger.debug("%s: %s", name, text)
            if detector is not None and detector.handle(channel, text):
                return
            append(text)

        while True:
            received = False
            if channel.recv_ready():
                data = channel.recv(CHUNK_SIZE)
                if data:
                    route("stdout", data)
                    received = True
            if channel.recv_stderr_ready():
                data = channel.recv_stderr(CHUNK_SIZE)
                if data:
                    route("stderr", data)
                    received = True
            if received:
                continue
            if channel.exit_status_ready() and not (channel.recv_ready() or channel.recv_stderr_ready()):
                break
            channel.status_event.wait(POLL_INTERVAL)

        route("stdout", b"", final=True)
        route("stderr", b"", final=True)
        # paramiko reports -1 when the channel closed without an exit-status.
        status = channel.recv_exit_status()
        return status if status >= 0 else None

    def _get_sftp(self) -> paramiko.SFTPClient:
        """Get or create an SFTP client."""
        self._active_transport()
        if self._sftp is None:
            self._sftp = cast(paramiko.SSHClient, self._client).open_sftp()
        return self._sftp

    def write_remote_file(self, source: str | os.PathLike[str], destination: str) -> None:
        """Upload a local file to the remote host via SFTP."""
        try:
            self._get_sftp().put(os.fspath(source), destination)
        except (OSError, paramiko.SSHException) as exc:
            raise FileError(
                f"Could not upload '{os.fspath(source)}' to '{destination}' on {self.target.uri}: {exc}",
                "WRITE_ERROR",
            ) from exc

    def make_tempdir(self) -> RemoteTempdir:
        """Create a private tempdir on the remote host.

        With a ``tmpdir`` option the directory is ``<tmpdir>/<uuid>``, made
        with ``mkdir -m 700``; the root itself is not created. Otherwise
        ``mktemp -d`` picks the path.
        """
        tmpdir_root = self.target.option("tmpdir")
        tmppath: str | None = None
        if tmpdir_root:
            tmppath = f"{str(tmpdir_root).rstrip('/')}/{uuid.uuid4()}"
            command = ["mkdir", "-m", "700", tmppath]
        else:
            command = ["mktemp", "-d"]

        result = self.execute(command)
        if result.exit_code != 0:
            raise FileError(f"Could not make tempdir: {result.stderr}", "TEMPDIR_ERROR")
        return RemoteTempdir(self, tmppath or result.stdout.rstrip("\r\n"))

    def make_executable(self, path: str) -> None:
        """Add the owner execute bit to a remote file."""
        result = self.execute(["chmod", "u+x", path])
        if result.exit_code != 0:
            raise FileError(
                f"Could not make file '{path}' executable: {result.stderr}",
                "CHMOD_ERROR",
            )

    def __repr__(self) -> str:
        return f"SSHConnection({self.user}@{self.target.host}:{self.target.port or 22})"
