"""Unit tests for path and environment configuration."""

import sys
from pathlib import Path

import pytest

from zerotier_one import paths


@pytest.mark.unit
def test_home_override(monkeypatch, tmp_path):
    monkeypatch.setenv("ZEROTIER_HOME", str(tmp_path))
    assert paths.default_home() == tmp_path
    assert paths.auth_token_default_system_path() == tmp_path / "authtoken.secret"


@pytest.mark.unit
def test_platform_default_home(monkeypatch):
    monkeypatch.delenv("ZEROTIER_HOME", raising=False)
    home = paths.default_home()
    if sys.platform == "win32":
        assert home.parts[-2:] == ("ZeroTier", "One")
    elif sys.platform == "darwin":
        assert home == Path("/Library/Application Support/ZeroTier/One")
    else:
        assert home == Path("/var/lib/zerotier-one")


@pytest.mark.unit
def test_home_files(tmp_path):
    assert paths.pid_file_path(tmp_path) == tmp_path / "service.pid"
    assert paths.log_file_path(tmp_path) == tmp_path / "service.log"
    assert paths.auth_token_path(tmp_path) == tmp_path / "authtoken.secret"


@pytest.mark.unit
def test_log_settings(monkeypatch):
    monkeypatch.setenv("ZEROTIER_LOG_LEVEL", "debug")
    assert paths.log_level_name() == "DEBUG"
    monkeypatch.setenv("ZEROTIER_LOG_CONSOLE", "1")
    assert paths.log_to_console()
