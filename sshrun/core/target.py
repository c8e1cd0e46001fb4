"""Target: the remote host plus every connection and execution option.

Recognised option keys (dashed form):

- ``private-key``: key file path, or a mapping with inline ``key-data``
- ``host-key-check``: verify the host key against known_hosts
- ``connect-timeout``: seconds to wait while connecting
- ``tmpdir``: root directory for remote tempdirs
- ``sudo-password``: password answered to the sudo prompt
- ``run-as``: default user to run sudoable commands as
- ``tty``: request a pseudo-terminal for every command
- ``environment``: variables assigned for every command, under per-call ones
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any
from urllib.parse import unquote, urlparse


def normalize_options(options: Mapping[str, Any]) -> dict[str, Any]:
    """Return options keyed by their dashed names (``run_as`` -> ``run-as``)."""
    return {key.replace("_", "-"): value for key, value in options.items()}


@dataclass(frozen=True)
class Target:
    """Immutable description of where and how to run commands.

    Attributes:
        host: Hostname or address.
        user: Login user. Falls back to ~/.ssh/config, then the local login.
        password: Login password, if password authentication is used.
        port: SSH port. None means the transport default (22).
        options: Per-target options, see module docstring.
    """

    host: str
    user: str | None = None
    password: str | None = None
    port: int | None = None
    options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.host or not self.host.strip():
            raise ValueError("Target host must be a non-empty string.")
        if self.port is not None and not 1 <= int(self.port) <= 65535:
            raise ValueError(f"Target port must be 1-65535, got: {self.port}")
        object.__setattr__(self, "options", MappingProxyType(normalize_options(self.options)))

    @classmethod
    def from_uri(cls, uri: str, **options: Any) -> Target:
        """Build a target from ``ssh://[user[:password]@]host[:port]``.

        A bare ``host`` or ``user@host`` is accepted as well.
        """
        if "://" not in uri:
            uri = f"ssh://{uri}"
        parsed = urlparse(uri)
        if parsed.scheme != "ssh":
            raise ValueError(f"Expected ssh:// URI, got: {uri}")
        if not parsed.hostname:
            raise ValueError(f"No host in target URI: {uri}")

        return cls(
            host=parsed.hostname,
            user=unquote(parsed.username) if parsed.username else None,
            password=unquote(parsed.password) if parsed.password else None,
            port=parsed.port,
            options=options,
        )

    @property
    def uri(self) -> str:
        """Return the target as an ssh:// URI, without the password."""
        userinfo = f"{self.user}@" if self.user else ""
        port = f":{self.port}" if self.port else ""
        return f"ssh://{userinfo}{self.host}{port}"

    def option(self, key: str, default: Any = None) -> Any:
        """Look up an option by dashed or underscored name."""
        return self.options.get(key.replace("_", "-"), default)

    def with_defaults(self, defaults: Mapping[str, Any]) -> Target:
        """Return a new target whose options fall back to ``defaults``."""
        merged = normalize_options(defaults)
        merged.update(self.options)
        return replace(self, options=merged)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict, masking secrets."""
        options = dict(self.options)
        if options.get("sudo-password"):
            options["sudo-password"] = "***"
        if isinstance(options.get("private-key"), Mapping):
            options["private-key"] = "***"
        return {
            "host": self.host,
            "user": self.user,
            "port": self.port,
            "password": "***" if self.password else None,
            "options": options,
        }

    def __repr__(self) -> str:
        return f"Target({self.uri})"
