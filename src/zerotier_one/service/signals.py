"""
Signal-safe termination notifications.

Signal handlers do nothing but enqueue the signal number on a SimpleQueue (whose
put is reentrant-safe). A pump thread drains the queue and invokes the
termination callback outside signal context, so handlers never take locks or
touch the engine.

Handled signals:
- SIGINT, SIGTERM, SIGQUIT (and SIGBREAK on Windows): request termination
- SIGHUP, SIGPIPE, SIGUSR1, SIGUSR2, SIGALRM: ignored
"""

import logging
import queue
import signal
import threading
from typing import Any, Callable

TERMINATE_SIGNAL_NAMES = ("SIGINT", "SIGTERM", "SIGQUIT", "SIGBREAK")
IGNORED_SIGNAL_NAMES = ("SIGHUP", "SIGPIPE", "SIGUSR1", "SIGUSR2", "SIGALRM")

# Sentinel pushed by uninstall() to stop the pump thread
_STOP = -1


def _available(names: tuple[str, ...]) -> list[signal.Signals]:
    return [getattr(signal, name) for name in names if hasattr(signal, name)]


class SignalChannel:
    """Routes OS termination signals to a callback via a queue and pump thread.

    Example:
        >>> channel = SignalChannel(lambda signum: node.terminate(...))
        >>> channel.install()
        >>> try:
        ...     node.run()
        ... finally:
        ...     channel.uninstall()
    """

    def __init__(self, on_terminate: Callable[[int], None]) -> None:
        self._on_terminate = on_terminate
        self._queue: queue.SimpleQueue[int] = queue.SimpleQueue()
        self._previous: dict[signal.Signals, Any] = {}
        self._pump: threading.Thread | None = None

    def notify(self, signum: int, frame: object = None) -> None:
        """Signal handler: enqueue the signal number and return."""
        self._queue.put_nowait(signum)

    def install(self) -> None:
        """Register handlers and start the pump thread. Must run on the main thread."""
        for sig in _available(TERMINATE_SIGNAL_NAMES):
            self._previous[sig] = signal.signal(sig, self.notify)
        for sig in _available(IGNORED_SIGNAL_NAMES):
            self._previous[sig] = signal.signal(sig, signal.SIG_IGN)

        self._pump = threading.Thread(target=self._run_pump, name="SignalPump", daemon=True)
        self._pump.start()
        logging.debug(f"Installed handlers for {len(self._previous)} signals")

    def uninstall(self) -> None:
        """Restore previous handlers and stop the pump thread."""
        for sig, handler in self._previous.items():
            try:
                signal.signal(sig, handler)
            except (OSError, ValueError, TypeError) as e:
                logging.warning(f"Failed to restore handler for {sig!r}: {e}")
        self._previous.clear()

        if self._pump is not None:
            self._queue.put_nowait(_STOP)
            self._pump.join(timeout=1.0)
            self._pump = None

    def _run_pump(self) -> None:
        while True:
            signum = self._queue.get()
            if signum == _STOP:
                return
            try:
                name = signal.Signals(signum).name
            except ValueError:
                name = str(signum)
            logging.info(f"Received {name}, requesting termination")
            try:
                self._on_terminate(signum)
            except Exception as e:
                logging.error(f"Termination callback failed for {name}: {e}", exc_info=True)
