"""
Service paths and environment configuration.

Centralized definitions for the files the service keeps in its home directory
and for the well-known locations the control client searches for an auth token.

Environment overrides:
- ZEROTIER_HOME: default home directory (otherwise platform specific, see below)
- ZEROTIER_LOG_LEVEL: log level name for the service log (default INFO)
- ZEROTIER_LOG_CONSOLE: "1" to mirror the service log to stderr

Default home directories:
- Linux and other POSIX: /var/lib/zerotier-one
- macOS: /Library/Application Support/ZeroTier/One
- Windows: %ProgramData%\\ZeroTier\\One
"""

import os
import sys
from pathlib import Path

# Invocation-name markers used by the role dispatcher
CLI_NAME = "zerotier-cli"
IDTOOL_NAME = "zerotier-idtool"
SERVICE_NAME = "zerotier-one"

DEFAULT_PORT = 9993
DEFAULT_CONTROL_PORT = 39393

# Files inside the home directory
PID_FILE_NAME = "service.pid"
LOG_FILE_NAME = "service.log"
AUTH_TOKEN_FILE_NAME = "authtoken.secret"
IDENTITY_SECRET_FILE_NAME = "identity.secret"
IDENTITY_PUBLIC_FILE_NAME = "identity.public"

# Per-user auth token, checked by the control client before the system token
USER_AUTH_TOKEN_FILE_NAME = ".zeroTierOneAuthToken"


def platform_default_home() -> Path:
    """Return the platform's default service home directory."""
    if sys.platform == "win32":
        program_data = os.environ.get("PROGRAMDATA", "C:\\ProgramData")
        return Path(program_data) / "ZeroTier" / "One"
    if sys.platform == "darwin":
        return Path("/Library/Application Support/ZeroTier/One")
    return Path("/var/lib/zerotier-one")


def default_home() -> Path:
    """Return the service home directory, honoring ZEROTIER_HOME."""
    override = os.environ.get("ZEROTIER_HOME")
    if override:
        return Path(override)
    return platform_default_home()


def pid_file_path(home: Path) -> Path:
    return home / PID_FILE_NAME


def log_file_path(home: Path) -> Path:
    return home / LOG_FILE_NAME


def auth_token_path(home: Path) -> Path:
    return home / AUTH_TOKEN_FILE_NAME


def auth_token_default_user_path() -> Path:
    """Auth token file in the invoking user's home directory."""
    return Path.home() / USER_AUTH_TOKEN_FILE_NAME


def auth_token_default_system_path() -> Path:
    """Auth token file the service writes into its default home."""
    return auth_token_path(default_home())


def log_level_name() -> str:
    return os.environ.get("ZEROTIER_LOG_LEVEL", "INFO").upper()


def log_to_console() -> bool:
    if os.environ.get("ZEROTIER_LOG_CONSOLE") == "1":
        return True
    return sys.stderr.isatty()
