"""sshrun configuration via pydantic-settings.

Settings are loaded from (in priority order):
1. Overrides passed to get_settings()
2. .sshrun/config.json in the current directory, else ~/.sshrun/config.json
3. Environment variables prefixed with SSHRUN_ (or a .env file)
4. Built-in defaults

Most fields are defaults for target options; an option given explicitly
on a target always wins over these.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_config_file() -> Path | None:
    """Look for .sshrun/config.json in cwd, then home."""
    candidates = [
        Path.cwd() / ".sshrun" / "config.json",
        Path.home() / ".sshrun" / "config.json",
    ]
    for path in candidates:
        if path.is_file():
            return path
    return None


def _json_config_source() -> dict[str, Any]:
    """Load settings from the first config.json found."""
    path = _find_config_file()
    if path is None:
        return {}
    try:
        return json.loads(path.read_text())  # type: ignore[no-any-return]
    except (json.JSONDecodeError, OSError):
        return {}


class SshrunSettings(BaseSettings):
    """Global settings for sshrun."""

    model_config = SettingsConfigDict(
        env_prefix="SSHRUN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Connection defaults ---
    connect_timeout: float = Field(
        default=10.0,
        description="Seconds to wait while establishing a session.",
    )
    host_key_check: bool = Field(
        default=False,
        description="Verify host keys against known_hosts (strict) instead of accepting them.",
    )

    # --- Execution defaults ---
    tty: bool = Field(
        default=False,
        description="Request a pseudo-terminal for every command.",
    )
    tmpdir: str = Field(
        default="",
        description="Root directory for remote tempdirs. Empty means use mktemp -d.",
    )
    run_as: str = Field(
        default="",
        description="Default user to run sudoable commands as.",
    )

    # --- Output ---
    log_level: str = Field(
        default="WARNING",
        description="Log level used when no -v/-q flag is given.",
    )
    rich_output: bool = Field(
        default=True,
        description="Format command output with rich; plain text when false.",
    )

    def target_defaults(self) -> dict[str, Any]:
        """Return target option defaults keyed by dashed option names."""
        defaults: dict[str, Any] = {
            "connect-timeout": self.connect_timeout,
            "host-key-check": self.host_key_check,
        }
        if self.tty:
            defaults["tty"] = True
        if self.tmpdir:
            defaults["tmpdir"] = self.tmpdir
        if self.run_as:
            defaults["run-as"] = self.run_as
        return defaults


def get_settings(**overrides: Any) -> SshrunSettings:
    """Get settings, merging overrides with config file and env vars."""
    file_values = _json_config_source()
    file_values.update(overrides)
    return SshrunSettings(**file_values)


def get_config_dir() -> Path:
    """Return the .sshrun directory in cwd, creating it if needed."""
    config_dir = Path.cwd() / ".sshrun"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def save_config(key: str, value: str) -> Path:
    """Save a single config key to .sshrun/config.json."""
    config_path = get_config_dir() / "config.json"
    data: dict[str, Any] = {}
    if config_path.is_file():
        try:
            data = json.loads(config_path.read_text())
        except (json.JSONDecodeError, OSError):
            pass
    data[key] = value
    config_path.write_text(json.dumps(data, indent=2) + "\n")
    return config_path
