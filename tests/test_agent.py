"""Tests for SSH agent detection."""

from __future__ import annotations

from sshrun.transport import agent


def test_socket_probe_requires_auth_sock():
    assert agent.SocketAgentProbe({"SSH_AUTH_SOCK": "/run/agent.sock"}).available()
    assert not agent.SocketAgentProbe({"SSH_AUTH_SOCK": ""}).available()
    assert not agent.SocketAgentProbe({}).available()


def test_default_probe_on_posix(monkeypatch):
    monkeypatch.setattr(agent.sys, "platform", "linux")
    assert isinstance(agent.default_agent_probe(), agent.SocketAgentProbe)


def test_default_probe_on_windows(monkeypatch):
    monkeypatch.setattr(agent.sys, "platform", "win32")
    assert isinstance(agent.default_agent_probe(), agent.PageantAgentProbe)


def test_static_probe():
    assert agent.StaticAgentProbe(True).available()
    assert not agent.StaticAgentProbe(False).available()
