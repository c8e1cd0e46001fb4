"""Detect whether an SSH authentication agent can be reached.

paramiko tries the agent whenever ``allow_agent`` is set, so on hosts with
no agent we switch it off up front. Each platform gets its own probe; the
connection only sees the ``AgentProbe`` interface.
"""

from __future__ import annotations

import abc
import os
import sys
from collections.abc import Mapping


class AgentProbe(abc.ABC):
    """Capability check for an SSH agent on the local machine."""

    #: Explanation logged when the agent is unavailable.
    reason: str = "ssh agent is not available"

    @abc.abstractmethod
    def available(self) -> bool:
        """Return True if an agent channel is reachable."""
        ...


class SocketAgentProbe(AgentProbe):
    """POSIX agents (ssh-agent, gpg-agent) advertised through SSH_AUTH_SOCK."""

    reason = "ssh-agent is not available"

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = os.environ if environ is None else environ

    def available(self) -> bool:
        return bool(self._environ.get("SSH_AUTH_SOCK", "").strip())


class PageantAgentProbe(AgentProbe):
    """Windows Pageant, found by looking up its window."""

    reason = "pageant process not running"

    def available(self) -> bool:
        import ctypes

        user32 = ctypes.windll.user32  # type: ignore[attr-defined]
        return bool(user32.FindWindowW("Pageant", "Pageant"))


class StaticAgentProbe(AgentProbe):
    """Probe with a fixed answer, for callers that already know."""

    def __init__(self, available: bool) -> None:
        self._available = available

    def available(self) -> bool:
        return self._available


def default_agent_probe() -> AgentProbe:
    """Return the probe for the running platform."""
    if sys.platform == "win32":
        return PageantAgentProbe()
    return SocketAgentProbe()
