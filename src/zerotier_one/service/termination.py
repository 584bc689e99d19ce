"""
Termination state for the running service.

A TerminationState is created once per service process. It starts out as
Running and transitions exactly once to a terminal reason (normal termination,
unrecoverable error, or restart-for-upgrade). Later attempts to terminate are
rejected so the first reason recorded always wins.

The state is written by whichever thread detects the condition (the signal pump
thread, the control server thread, or the engine itself) and read by the
supervisor after start-and-wait returns.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum

# How often waiters wake up; keeps the main thread responsive to signals
WAIT_POLL_INTERVAL = 0.25


class TerminationKind(Enum):
    """Variant tag of a TerminationReason."""

    RUNNING = "running"
    NORMAL_TERMINATION = "normal_termination"
    UNRECOVERABLE_ERROR = "unrecoverable_error"
    RESTART_FOR_UPGRADE = "restart_for_upgrade"


@dataclass(frozen=True)
class TerminationReason:
    """Why (and whether) the service stopped.

    Attributes:
        kind: Variant of the reason
        message: Error text for UNRECOVERABLE_ERROR, binary path for
            RESTART_FOR_UPGRADE, optional free text for NORMAL_TERMINATION
    """

    kind: TerminationKind
    message: str | None = None

    @classmethod
    def running(cls) -> "TerminationReason":
        return cls(TerminationKind.RUNNING)

    @classmethod
    def normal(cls, message: str | None = None) -> "TerminationReason":
        return cls(TerminationKind.NORMAL_TERMINATION, message)

    @classmethod
    def unrecoverable(cls, message: str) -> "TerminationReason":
        return cls(TerminationKind.UNRECOVERABLE_ERROR, message)

    @classmethod
    def restart_for_upgrade(cls, path: str) -> "TerminationReason":
        return cls(TerminationKind.RESTART_FOR_UPGRADE, path)

    @property
    def is_terminal(self) -> bool:
        return self.kind != TerminationKind.RUNNING

    def __str__(self) -> str:
        if self.message:
            return f"{self.kind.value}: {self.message}"
        return self.kind.value


class TerminationState:
    """Thread-safe, single-transition holder for a TerminationReason."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._terminated = threading.Event()
        self._reason = TerminationReason.running()

    @property
    def reason(self) -> TerminationReason:
        with self._lock:
            return self._reason

    @property
    def is_terminated(self) -> bool:
        return self._terminated.is_set()

    def terminate(self, reason: TerminationReason) -> bool:
        """Record a terminal reason.

        Args:
            reason: Terminal reason to record

        Returns:
            True if this call performed the transition, False if the state was
            already terminal (the earlier reason is kept)

        Raises:
            ValueError: If reason is RUNNING
        """
        if not reason.is_terminal:
            raise ValueError("Cannot transition back to RUNNING")

        with self._lock:
            if self._reason.is_terminal:
                logging.debug(f"Ignoring termination ({reason}), already terminated ({self._reason})")
                return False
            self._reason = reason
            self._terminated.set()

        logging.info(f"Service termination requested: {reason}")
        return True

    def wait(self, timeout: float | None = None) -> TerminationReason:
        """Block until the state is terminal or the timeout elapses.

        Waits in short slices so that signal handlers registered on the main
        thread keep running while it is blocked here.

        Args:
            timeout: Maximum seconds to wait, or None to wait forever

        Returns:
            The current reason (RUNNING only if the timeout elapsed)
        """
        if timeout is None:
            while not self._terminated.wait(WAIT_POLL_INTERVAL):
                pass
        else:
            self._terminated.wait(timeout)
        return self.reason
