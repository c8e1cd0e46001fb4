"""Tests for SSHConnection connect/disconnect and error classification."""

from __future__ import annotations

import logging
import socket
from unittest.mock import MagicMock

import paramiko
import pytest

from sshrun.core.errors import ConnectError, FileError
from sshrun.core.target import Target
from sshrun.transport.agent import StaticAgentProbe
from sshrun.transport.ssh import (
    SSHConnection,
    StrictHostKeyPolicy,
    UnknownHostKeyError,
    classify_connect_error,
    resolve_user,
)


def _connection(target, client, available=True):
    return SSHConnection(
        target,
        agent_probe=StaticAgentProbe(available),
        client_factory=lambda: client,
    )


@pytest.fixture
def client():
    client = MagicMock(spec=paramiko.SSHClient)
    client.get_transport.return_value.is_active.return_value = True
    return client


class TestConnectOptions:
    def test_basic_options(self, client):
        target = Target(host="web1", user="deploy", port=2222, options={"connect-timeout": 5})
        _connection(target, client).connect()

        kwargs = client.connect.call_args.kwargs
        assert kwargs["hostname"] == "web1"
        assert kwargs["username"] == "deploy"
        assert kwargs["port"] == 2222
        assert kwargs["timeout"] == 5.0
        assert kwargs["allow_agent"] is True
        assert kwargs["look_for_keys"] is True

    def test_key_file_disables_agent_and_discovery(self, client):
        target = Target(host="web1", user="deploy", options={"private-key": "/keys/id_ed25519"})
        _connection(target, client).connect()

        kwargs = client.connect.call_args.kwargs
        assert kwargs["key_filename"] == "/keys/id_ed25519"
        assert kwargs["allow_agent"] is False
        assert kwargs["look_for_keys"] is False

    def test_password_is_passed(self, client):
        target = Target(host="web1", user="deploy", password="pw")
        _connection(target, client).connect()
        assert client.connect.call_args.kwargs["password"] == "pw"

    def test_inline_key_data(self, client, monkeypatch):
        pkey = MagicMock(spec=paramiko.PKey)
        monkeypatch.setattr("sshrun.transport.ssh.load_key_data", lambda data: pkey)
        target = Target(host="web1", user="deploy", options={"private-key": {"key-data": "-----BEGIN..."}})
        _connection(target, client).connect()
        assert client.connect.call_args.kwargs["pkey"] is pkey

    def test_invalid_inline_key_is_auth_error(self, client):
        target = Target(host="web1", user="deploy", options={"private-key": {"key-data": "garbage"}})
        with pytest.raises(ConnectError) as excinfo:
            _connection(target, client).connect()
        assert excinfo.value.issue_code == "AUTH_ERROR"

    def test_agent_disabled_when_unavailable(self, client, caplog):
        target = Target(host="web1", user="deploy")
        with caplog.at_level(logging.DEBUG, logger="sshrun"):
            _connection(target, client, available=False).connect()
        assert client.connect.call_args.kwargs["allow_agent"] is False
        assert "Disabling agent use" in caplog.text

    def test_lenient_host_keys_by_default(self, client):
        _connection(Target(host="web1", user="deploy"), client).connect()
        policy = client.set_missing_host_key_policy.call_args.args[0]
        assert isinstance(policy, paramiko.AutoAddPolicy)
        client.load_system_host_keys.assert_not_called()

    def test_strict_host_keys_when_requested(self, client):
        target = Target(host="web1", user="deploy", options={"host-key-check": True})
        _connection(target, client).connect()
        policy = client.set_missing_host_key_policy.call_args.args[0]
        assert isinstance(policy, StrictHostKeyPolicy)
        client.load_system_host_keys.assert_called_once()


class TestConnectErrors:
    @pytest.mark.parametrize(
        ("exc", "code"),
        [
            (paramiko.AuthenticationException("denied"), "AUTH_ERROR"),
            (paramiko.BadAuthenticationType("bad", ["publickey"]), "AUTH_ERROR"),
            (UnknownHostKeyError("not in known_hosts"), "HOST_KEY_ERROR"),
            (socket.timeout("timed out"), "CONNECT_ERROR"),
            (paramiko.SSHException("banner"), "CONNECT_ERROR"),
            (OSError("unreachable"), "CONNECT_ERROR"),
        ],
    )
    def test_failures_are_classified(self, client, exc, code):
        client.connect.side_effect = exc
        conn = _connection(Target(host="web1", user="deploy"), client)
        with pytest.raises(ConnectError) as excinfo:
            conn.connect()
        assert excinfo.value.issue_code == code
        assert "ssh://deploy@web1" in excinfo.value.message
        assert not conn.connected
        client.close.assert_called_once()

    def test_bad_host_key(self):
        key = MagicMock(spec=paramiko.PKey)
        key.get_base64.return_value = "AAAA"
        exc = paramiko.BadHostKeyException("web1", key, key)
        error = classify_connect_error(exc, Target(host="web1"))
        assert error.issue_code == "HOST_KEY_ERROR"

    def test_timeout_message_names_timeout(self):
        target = Target(host="web1", options={"connect-timeout": 7})
        error = classify_connect_error(TimeoutError(), target)
        assert error.message == "Timeout after 7 seconds connecting to ssh://web1"

    def test_strict_policy_rejects_unknown_host(self):
        key = MagicMock(spec=paramiko.PKey)
        key.get_name.return_value = "ssh-ed25519"
        with pytest.raises(UnknownHostKeyError):
            StrictHostKeyPolicy().missing_host_key(MagicMock(), "web1", key)


class TestReconnect:
    def test_connect_twice_reuses_open_session(self):
        clients = []

        def factory():
            client = MagicMock(spec=paramiko.SSHClient)
            client.get_transport.return_value.is_active.return_value = True
            clients.append(client)
            return client

        conn = SSHConnection(
            Target(host="web1", user="deploy"),
            agent_probe=StaticAgentProbe(True),
            client_factory=factory,
        )
        conn.connect()
        conn.connect()

        assert len(clients) == 1
        clients[0].close.assert_not_called()
        assert conn.connected

    def test_dead_session_is_closed_before_reconnecting(self):
        clients = []

        def factory():
            client = MagicMock(spec=paramiko.SSHClient)
            client.get_transport.return_value.is_active.return_value = True
            clients.append(client)
            return client

        conn = SSHConnection(
            Target(host="web1", user="deploy"),
            agent_probe=StaticAgentProbe(True),
            client_factory=factory,
        )
        conn.connect()
        clients[0].get_transport.return_value.is_active.return_value = False
        conn.connect()

        assert len(clients) == 2
        clients[0].close.assert_called_once()
        assert conn.connected


class TestDisconnect:
    def test_disconnect_before_connect_is_noop(self, client):
        conn = _connection(Target(host="web1", user="deploy"), client)
        conn.disconnect()
        client.close.assert_not_called()

    def test_disconnect_twice(self, client, caplog):
        conn = _connection(Target(host="web1", user="deploy"), client)
        conn.connect()
        with caplog.at_level(logging.DEBUG, logger="sshrun"):
            conn.disconnect()
            conn.disconnect()
        client.close.assert_called_once()
        assert caplog.text.count("Closed session") == 1

    def test_disconnect_swallows_close_errors(self, client):
        client.close.side_effect = OSError("broken pipe")
        conn = _connection(Target(host="web1", user="deploy"), client)
        conn.connect()
        conn.disconnect()
        assert not conn.connected

    def test_context_manager(self, client):
        with _connection(Target(host="web1", user="deploy"), client) as conn:
            assert conn.connected
        client.close.assert_called_once()


class TestResolveUser:
    def test_target_user_wins(self, tmp_path):
        assert resolve_user(Target(host="web1", user="deploy"), tmp_path / "missing") == "deploy"

    def test_ssh_config_user(self, tmp_path):
        config = tmp_path / "config"
        config.write_text("Host web*\n    User ops\n")
        assert resolve_user(Target(host="web1"), config) == "ops"

    def test_falls_back_to_login(self, tmp_path, monkeypatch):
        monkeypatch.setattr("sshrun.transport.ssh.getpass.getuser", lambda: "localme")
        assert resolve_user(Target(host="web1"), tmp_path / "missing") == "localme"


class TestWriteRemoteFile:
    def test_upload_via_sftp(self, client, tmp_path):
        local = tmp_path / "payload.sh"
        local.write_text("#!/bin/sh\n")
        conn = _connection(Target(host="web1", user="deploy"), client)
        conn.connect()
        conn.write_remote_file(local, "/tmp/x/payload.sh")
        client.open_sftp.return_value.put.assert_called_once_with(str(local), "/tmp/x/payload.sh")

    def test_upload_failure_is_write_error(self, client, tmp_path):
        client.open_sftp.return_value.put.side_effect = OSError("No such file")
        conn = _connection(Target(host="web1", user="deploy"), client)
        conn.connect()
        with pytest.raises(FileError) as excinfo:
            conn.write_remote_file(tmp_path / "missing", "/tmp/x/missing")
        assert excinfo.value.issue_code == "WRITE_ERROR"
