"""
PID file bookkeeping for the service.

The supervisor writes `<home>/service.pid` once it is allowed to run and removes
it on every exit path. Only a file this process wrote is ever removed. The file
is advisory: a failure to write it is logged and tolerated, and no locking is
performed. A PID file left behind tells the next launch that the previous instance did not shut down cleanly.
"""

import logging
import os
from pathlib import Path

import psutil


class PidFile:
    """Owns the PID file of a single running service instance."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._written = False

    def read(self) -> int | None:
        """Read the recorded process id.

        Returns:
            The process id, or None if the file is missing or unparsable
        """
        try:
            return int(self.path.read_text().strip())
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logging.warning(f"Unreadable PID file {self.path}: {e}")
            return None

    def is_stale(self) -> bool:
        """Check whether a PID file exists for a process that is no longer running."""
        pid = self.read()
        if pid is None:
            return self.path.exists()
        return not psutil.pid_exists(pid)

    def write(self, pid: int | None = None) -> bool:
        """Record the current (or given) process id.

        Args:
            pid: Process id to record (defaults to os.getpid())

        Returns:
            True if the file was written, False if writing failed
        """
        if pid is None:
            pid = os.getpid()

        existing = self.read()
        if existing is not None and existing != pid:
            if self.is_stale():
                logging.info(f"Replacing stale PID file for PID {existing}")
            else:
                logging.warning(f"PID file {self.path} names running process {existing}, overwriting")

        try:
            self.path.write_text(str(pid))
        except OSError as e:
            logging.warning(f"Failed to write PID file {self.path}: {e}")
            return False

        self._written = True
        logging.info(f"Wrote PID file {self.path} (PID {pid})")
        return True

    def remove(self) -> None:
        """Remove the PID file if this instance wrote it; never raises.

        A file left by another instance (or never written here) is not touched.
        """
        if not self._written:
            return
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logging.error(f"Failed to remove PID file {self.path}: {e}")
            return
        logging.info(f"Removed PID file {self.path}")
        self._written = False
