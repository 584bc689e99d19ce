"""Privilege checks required before the service may start."""

import logging
import os
import sys
from typing import Callable

from zerotier_one.errors import PrivilegeError


def is_privileged() -> bool:
    """Check whether the process may run the service.

    Returns:
        - POSIX: True when running as root (uid 0)
        - Windows: True when the user is a local administrator
    """
    if sys.platform == "win32":
        try:
            import ctypes

            return bool(ctypes.windll.shell32.IsUserAnAdmin())  # type: ignore[attr-defined]
        except (AttributeError, OSError) as e:
            logging.warning(f"Unable to determine administrator status: {e}")
            return False
    return os.getuid() == 0


def privilege_requirement() -> str:
    """Human readable description of the privilege the service needs."""
    if sys.platform == "win32":
        return "must be run as a local administrator."
    return "must be run as root (uid==0)"


def require_privileges(check: Callable[[], bool] = is_privileged) -> None:
    """Raise PrivilegeError unless the process may run the service."""
    if not check():
        raise PrivilegeError(privilege_requirement())
