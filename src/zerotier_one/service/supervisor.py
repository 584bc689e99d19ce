"""
Process Supervisor - owns the service engine for the lifetime of the process.

Lifecycle:

    Idle -> Running -> NormalTermination | UnrecoverableError | RestartForUpgrade

Entry:
1. Install the signal channel
2. Check privileges (exit 1 without creating any state if missing)
3. Create the home directory
4. Configure logging to <home>/service.log
5. Write the PID file (best effort)
6. Construct the engine and block in engine.run()

Exit mapping:
- NormalTermination -> 0
- UnrecoverableError -> "<prog>: abnormal termination: <message>" on stderr, 3
- RestartForUpgrade -> UpgradeStrategy (exec replace, or marker line and 4;
  2 if the hand-off fails)

A termination signal that arrives before the engine exists is remembered; the
engine is then never started and run() returns 0. Whatever the path, a PID file
written by this run is removed and the previous signal handlers are restored
before run() returns. Faults raised while constructing or running the engine
are logged with their traceback and reported as UnrecoverableError.
"""

import logging
import sys
import threading
from enum import Enum
from typing import Callable, TextIO

from zerotier_one.dispatch import ServiceOptions
from zerotier_one.errors import PrivilegeError, SupervisorContractError
from zerotier_one.log import setup_logging, shutdown_logging
from zerotier_one.paths import SERVICE_NAME, log_file_path, log_level_name, log_to_console, pid_file_path
from zerotier_one.service.node import SIGNAL_TERMINATION_MESSAGE, Node, ServiceEngine
from zerotier_one.service.pidfile import PidFile
from zerotier_one.service.privileges import is_privileged, require_privileges
from zerotier_one.service.signals import SignalChannel
from zerotier_one.service.termination import TerminationKind, TerminationReason
from zerotier_one.service.upgrade import UpgradeStrategy, select_upgrade_strategy

EXIT_OK = 0
EXIT_PRIVILEGE_ERROR = 1
EXIT_CONFIGURATION_ERROR = 1
EXIT_UNRECOVERABLE = 3

EngineFactory = Callable[..., ServiceEngine]


class SupervisorState(Enum):
    """Lifecycle state of the supervisor."""

    IDLE = "idle"
    RUNNING = "running"
    NORMAL_TERMINATION = "normal_termination"
    UNRECOVERABLE_ERROR = "unrecoverable_error"
    RESTART_FOR_UPGRADE = "restart_for_upgrade"


_STATE_FOR_KIND = {
    TerminationKind.NORMAL_TERMINATION: SupervisorState.NORMAL_TERMINATION,
    TerminationKind.UNRECOVERABLE_ERROR: SupervisorState.UNRECOVERABLE_ERROR,
    TerminationKind.RESTART_FOR_UPGRADE: SupervisorState.RESTART_FOR_UPGRADE,
}


def fault_reason(error: BaseException) -> TerminationReason:
    """Convert an unexpected exception into an unrecoverable termination."""
    return TerminationReason.unrecoverable(f"{type(error).__name__}: {error}")


def exit_code_for(
    reason: TerminationReason,
    strategy: UpgradeStrategy,
    pid_file: PidFile | None,
    program: str,
    stderr: TextIO,
) -> int:
    """Map a terminal reason to the process exit code, performing any upgrade hand-off.

    Raises:
        SupervisorContractError: If reason is not terminal
    """
    if reason.kind == TerminationKind.NORMAL_TERMINATION:
        return EXIT_OK
    if reason.kind == TerminationKind.UNRECOVERABLE_ERROR:
        print(f"{program}: abnormal termination: {reason.message}", file=stderr)
        return EXIT_UNRECOVERABLE
    if reason.kind == TerminationKind.RESTART_FOR_UPGRADE:
        return strategy.apply(reason.message, pid_file, program)
    raise SupervisorContractError(f"no exit code for non-terminal reason {reason}")


class Supervisor:
    """Runs the service role: setup, start-and-wait, exit mapping, cleanup."""

    def __init__(
        self,
        options: ServiceOptions,
        program: str = SERVICE_NAME,
        engine_factory: EngineFactory = Node,
        upgrade_strategy: UpgradeStrategy | None = None,
        signal_channel: SignalChannel | None = None,
        privileged: Callable[[], bool] = is_privileged,
        stderr: TextIO | None = None,
    ) -> None:
        """Initialize the Supervisor.

        Args:
            options: Parsed service command line
            program: Program name used in diagnostics
            engine_factory: Called as engine_factory(home, port, control_port)
            upgrade_strategy: Restart-for-upgrade behavior (default by platform)
            signal_channel: Signal routing (default routes to request_termination)
            privileged: Privilege check
            stderr: Stream for diagnostics (default sys.stderr)
        """
        self.options = options
        self.program = program
        self._engine_factory = engine_factory
        self._upgrade_strategy = upgrade_strategy or select_upgrade_strategy()
        self._signal_channel = signal_channel or SignalChannel(self.request_termination)
        self._privileged = privileged
        self._stderr = stderr
        self._engine: ServiceEngine | None = None
        self._engine_lock = threading.Lock()
        self._termination_pending = False
        self._state = SupervisorState.IDLE
        self.pid_file = PidFile(pid_file_path(options.home))

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def engine(self) -> ServiceEngine | None:
        return self._engine

    @property
    def termination_requested(self) -> bool:
        """True once a termination arrived while no engine existed."""
        with self._engine_lock:
            return self._termination_pending

    def request_termination(self, signum: int) -> None:
        """Signal pump callback: stop the engine, or keep it from ever starting."""
        with self._engine_lock:
            engine = self._engine
            if engine is None:
                self._termination_pending = True
        if engine is None:
            logging.info("Termination requested before the engine started")
            return
        engine.terminate(TerminationReason.normal(SIGNAL_TERMINATION_MESSAGE))

    def run(self) -> int:
        """Run the service role to completion.

        Returns:
            Process exit code (only if the process was not replaced by an upgrade)
        """
        stderr = self._stderr or sys.stderr
        home = self.options.home
        handlers: list[logging.Handler] = []

        self._signal_channel.install()
        try:
            try:
                require_privileges(self._privileged)
            except PrivilegeError as e:
                print(f"{self.program}: {e}", file=stderr)
                return EXIT_PRIVILEGE_ERROR

            try:
                home.mkdir(mode=0o755, parents=True, exist_ok=True)
            except OSError as e:
                return self._finish(fault_reason(e), stderr)

            handlers = setup_logging(log_file_path(home), level=log_level_name(), console=log_to_console())
            logging.info(f"{self.program} starting in {home}")
            self.pid_file.write()

            self._state = SupervisorState.RUNNING
            try:
                reason = self._run_engine()
            except SupervisorContractError as e:
                logging.critical(f"Engine contract violation: {e}")
                reason = fault_reason(e)
            return self._finish(reason, stderr)
        finally:
            self.pid_file.remove()
            self._signal_channel.uninstall()
            if handlers:
                logging.info(f"{self.program} exiting ({self._state.value})")
            shutdown_logging(handlers)

    def _run_engine(self) -> TerminationReason:
        if self.termination_requested:
            logging.info("Not starting the engine, termination already requested")
            return TerminationReason.normal(SIGNAL_TERMINATION_MESSAGE)

        try:
            engine = self._engine_factory(self.options.home, self.options.port, self.options.control_port)
        except Exception as e:
            logging.error(f"Unable to construct service engine: {e}", exc_info=True)
            return fault_reason(e)

        with self._engine_lock:
            self._engine = engine
            pending = self._termination_pending
        if pending:
            logging.info("Termination requested while the engine was being constructed, not starting it")
            return TerminationReason.normal(SIGNAL_TERMINATION_MESSAGE)

        try:
            reason = engine.run()
        except Exception as e:
            logging.error(f"Service engine failed: {e}", exc_info=True)
            return fault_reason(e)

        if not reason.is_terminal:
            raise SupervisorContractError("engine returned from run() without a terminal reason")
        return reason

    def _finish(self, reason: TerminationReason, stderr: TextIO) -> int:
        self._state = _STATE_FOR_KIND.get(reason.kind, self._state)
        return exit_code_for(reason, self._upgrade_strategy, self.pid_file, self.program, stderr)
