"""Pytest configuration and fixtures for zerotier-one tests.

Python 3.13 changed how stdout/stderr are handled, causing "I/O operation on closed
file" errors during test teardown when a test closes a captured stream. This is a
known issue: https://github.com/pytest-dev/pytest/issues/11439
"""

import socket
import sys
import warnings

import pytest

# Suppress ResourceWarnings from socket cleanup in Python 3.13
if sys.version_info >= (3, 13):
    warnings.filterwarnings("ignore", category=ResourceWarning)


@pytest.fixture(autouse=True)
def _restore_stdio():  # noqa: PT004
    """Ensure stdout/stderr are always restored after each test."""
    yield

    if sys.stdout.closed:
        sys.stdout = sys.__stdout__
    if sys.stderr.closed:
        sys.stderr = sys.__stderr__


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch, tmp_path):
    """Keep tests away from the real service home and the user's token file."""
    monkeypatch.setenv("ZEROTIER_HOME", str(tmp_path / "default-home"))
    monkeypatch.setenv("ZEROTIER_LOG_CONSOLE", "0")
    monkeypatch.delenv("ZEROTIER_LOG_LEVEL", raising=False)
    monkeypatch.setattr("zerotier_one.control.auth.auth_token_default_user_path", lambda: tmp_path / "user-token")


@pytest.fixture
def home(tmp_path):
    """An existing, empty service home directory."""
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def free_port():
    """A loopback TCP port that was free a moment ago."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.hookimpl(hookwrapper=True, trylast=True)
def pytest_runtest_teardown(item):  # noqa: ARG001
    """Ensure streams are restored during teardown phase."""
    yield

    if hasattr(sys.stdout, "closed") and sys.stdout.closed:
        sys.stdout = sys.__stdout__
    if hasattr(sys.stderr, "closed") and sys.stderr.closed:
        sys.stderr = sys.__stderr__
