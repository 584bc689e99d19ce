"""
Restart-for-upgrade strategies.

When the service terminates with RESTART_FOR_UPGRADE the supervisor hands the
upgrade binary path to an UpgradeStrategy:

- ExecReplaceUpgrade: replaces the current process image with the upgrade
  binary (POSIX). Success never returns. The upgrade itself, or an init system
  such as launchd/systemd, is responsible for relaunching the service.
- MarkerLineUpgrade: prints a machine-parseable marker line with the path and
  exits with code 4. An outer service wrapper watches stdout for the marker and
  runs the upgrade (Windows).

select_upgrade_strategy() picks one by platform capability.
"""

import logging
import os
import sys
from abc import ABC, abstractmethod
from typing import Callable, TextIO

from zerotier_one.errors import UpgradeFault
from zerotier_one.service.pidfile import PidFile

EXIT_UPGRADE_FAILED = 2
EXIT_UPGRADE_AVAILABLE = 4

UPDATE_MARKER_FORMAT = '[[[ UPDATE AVAILABLE: "{path}" ]]]'


class UpgradeStrategy(ABC):
    """Turns a restart-for-upgrade outcome into an action and an exit code."""

    @abstractmethod
    def apply(self, path: str | None, pid_file: PidFile | None, program: str) -> int:
        """Perform the upgrade hand-off.

        Args:
            path: Path of the upgrade binary (may be None if unknown)
            pid_file: PID file of the running service
            program: Program name used in diagnostics

        Returns:
            Process exit code (only if the process was not replaced)
        """


class ExecReplaceUpgrade(UpgradeStrategy):
    """Replace the running process with the upgrade binary via exec."""

    def __init__(self, execv: Callable[[str, list[str]], object] = os.execv, stderr: TextIO | None = None) -> None:
        self._execv = execv
        self._stderr = stderr

    def apply(self, path: str | None, pid_file: PidFile | None, program: str) -> int:
        stderr = self._stderr or sys.stderr
        try:
            self._replace(path, pid_file)
        except UpgradeFault as e:
            logging.error(str(e))
            print(f"{program}: abnormal termination: unable to execute update at {path or '(unknown path)'}", file=stderr)
        return EXIT_UPGRADE_FAILED

    def _replace(self, path: str | None, pid_file: PidFile | None) -> None:
        """Exec the upgrade binary.

        Raises:
            UpgradeFault: If the process image was not replaced
        """
        if not path:
            raise UpgradeFault("no upgrade path was given")
        if pid_file is not None:
            pid_file.remove()
        logging.info(f"Replacing process with upgrade at {path}")
        for handler in logging.getLogger().handlers:
            handler.flush()
        try:
            # No arguments: the upgrade binary runs with argv == [path]
            self._execv(path, [path])
        except OSError as e:
            raise UpgradeFault(f"exec of upgrade {path} failed: {e}") from e
        raise UpgradeFault(f"exec of upgrade {path} returned")


class MarkerLineUpgrade(UpgradeStrategy):
    """Announce the upgrade on stdout and let the outer supervisor apply it."""

    def __init__(self, stdout: TextIO | None = None, stderr: TextIO | None = None) -> None:
        self._stdout = stdout
        self._stderr = stderr

    def apply(self, path: str | None, pid_file: PidFile | None, program: str) -> int:
        stdout = self._stdout or sys.stdout
        stderr = self._stderr or sys.stderr
        if not path:
            print(f"{program}: abnormal termination: unable to execute update at (unknown path)", file=stderr)
            return EXIT_UPGRADE_FAILED

        logging.info(f"Upgrade available at {path}, handing off to service wrapper")
        stdout.write(UPDATE_MARKER_FORMAT.format(path=path) + "\r\n")
        stdout.flush()
        return EXIT_UPGRADE_AVAILABLE


def can_replace_process() -> bool:
    """Check whether exec replaces the process image in place.

    Windows provides os.execv but emulates it by spawning a new process, which
    breaks service managers that track the original process.
    """
    return os.name == "posix" and hasattr(os, "execv")


def select_upgrade_strategy() -> UpgradeStrategy:
    """Pick the upgrade strategy for the current platform."""
    if can_replace_process():
        return ExecReplaceUpgrade()
    return MarkerLineUpgrade()
