"""Tests for settings loading and target option defaults."""

from __future__ import annotations

import json

import pytest

from sshrun.config import settings as settings_mod
from sshrun.config.settings import SshrunSettings, get_settings, save_config


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(settings_mod.Path, "home", classmethod(lambda cls: tmp_path / "home"))
    for name in ("SSHRUN_CONNECT_TIMEOUT", "SSHRUN_TMPDIR", "SSHRUN_RUN_AS", "SSHRUN_TTY"):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = get_settings()
    assert settings.connect_timeout == 10.0
    assert settings.host_key_check is False
    assert settings.target_defaults() == {"connect-timeout": 10.0, "host-key-check": False}


def test_env_vars(monkeypatch):
    monkeypatch.setenv("SSHRUN_TMPDIR", "/var/stage")
    monkeypatch.setenv("SSHRUN_RUN_AS", "svc")
    defaults = get_settings().target_defaults()
    assert defaults["tmpdir"] == "/var/stage"
    assert defaults["run-as"] == "svc"


def test_config_file(tmp_path):
    path = save_config("connect_timeout", "42")
    assert path == tmp_path / ".sshrun" / "config.json"
    assert json.loads(path.read_text()) == {"connect_timeout": "42"}
    assert get_settings().connect_timeout == 42.0


def test_home_config_file(tmp_path):
    home_config = tmp_path / "home" / ".sshrun" / "config.json"
    home_config.parent.mkdir(parents=True)
    home_config.write_text(json.dumps({"tty": True}))
    assert get_settings().target_defaults()["tty"] is True


def test_broken_config_file_is_ignored(tmp_path):
    (tmp_path / ".sshrun").mkdir()
    (tmp_path / ".sshrun" / "config.json").write_text("{not json")
    assert get_settings().connect_timeout == 10.0


def test_overrides_win():
    save_config("connect_timeout", "42")
    assert get_settings(connect_timeout=5).connect_timeout == 5.0


def test_known_fields():
    assert {"connect_timeout", "host_key_check", "tty", "tmpdir", "run_as", "log_level"} <= set(
        SshrunSettings.model_fields
    )
