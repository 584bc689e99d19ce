"""
Node - the service engine run by the supervisor.

The supervisor only depends on the ServiceEngine protocol: a blocking run()
that returns a terminal TerminationReason, and a thread-safe terminate() that
other threads (signal pump, control server) use to stop it.

Node is the concrete engine. On construction it prepares the home directory
state (identity keypair, control auth token). run() starts the loopback control
server, blocks until a terminal reason is recorded, stops the server and returns
the reason. It does not perform any peer-to-peer networking; the peer and
network listings therefore only contain their header lines.
"""

import logging
import os
from pathlib import Path
from typing import Iterable, Protocol

from zerotier_one import __version__
from zerotier_one.control.auth import ensure_auth_token
from zerotier_one.control.server import ControlServer
from zerotier_one.errors import IdentityError, ResourceError, ServiceFault
from zerotier_one.identity.identity import Identity
from zerotier_one.paths import (
    DEFAULT_CONTROL_PORT,
    DEFAULT_PORT,
    IDENTITY_PUBLIC_FILE_NAME,
    IDENTITY_SECRET_FILE_NAME,
    auth_token_path,
)
from zerotier_one.service.termination import TerminationReason, TerminationState

SIGNAL_TERMINATION_MESSAGE = "terminated by signal"


class ServiceEngine(Protocol):
    """What the supervisor needs from the network engine."""

    @property
    def termination_reason(self) -> TerminationReason: ...

    def run(self) -> TerminationReason:
        """Start the engine and block until it reaches a terminal reason."""
        ...

    def terminate(self, reason: TerminationReason) -> bool:
        """Request termination; safe to call from any thread."""
        ...


def load_or_create_identity(home: Path) -> Identity:
    """Load identity.secret from the home directory, generating it if needed.

    Raises:
        ResourceError: If a new identity cannot be written
    """
    secret_path = home / IDENTITY_SECRET_FILE_NAME
    public_path = home / IDENTITY_PUBLIC_FILE_NAME

    try:
        identity = Identity.from_string(secret_path.read_text(encoding="utf-8"))
        if identity.has_private() and identity.locally_validate():
            return identity
        logging.warning(f"{secret_path} is not a valid secret identity, generating a new one")
    except FileNotFoundError:
        logging.info(f"No identity found in {home}, generating a new one")
    except (OSError, UnicodeDecodeError, IdentityError) as e:
        logging.warning(f"Unable to load {secret_path} ({e}), generating a new one")

    identity = Identity.generate()
    try:
        secret_path.write_text(identity.to_string(include_private=True), encoding="utf-8")
        if os.name == "posix":
            os.chmod(secret_path, 0o600)
        public_path.write_text(identity.to_string(), encoding="utf-8")
    except OSError as e:
        raise ResourceError(f"unable to write identity to {home}: {e}") from e

    logging.info(f"Generated identity {identity.address}")
    return identity


class Node:
    """Concrete service engine owning the home directory state and control server."""

    def __init__(self, home: Path, port: int = 0, control_port: int = 0) -> None:
        """Initialize the Node.

        Args:
            home: Service home directory (must exist)
            port: Network port (0 selects the default)
            control_port: Loopback control port (0 selects the default)

        Raises:
            ResourceError: If the identity or auth token cannot be created
        """
        self.home = home
        self.port = port or DEFAULT_PORT
        self.control_port = control_port or DEFAULT_CONTROL_PORT
        self._state = TerminationState()

        self.identity = load_or_create_identity(home)
        self.auth_token = ensure_auth_token(auth_token_path(home))
        self.control_server = ControlServer(
            auth_token=self.auth_token,
            handler=self.handle_command,
            port=self.control_port,
        )

    @property
    def termination_reason(self) -> TerminationReason:
        return self._state.reason

    @property
    def online(self) -> bool:
        return False

    def terminate(self, reason: TerminationReason) -> bool:
        return self._state.terminate(reason)

    def run(self) -> TerminationReason:
        """Start the control server and block until terminated."""
        if self._state.is_terminated:
            return self._state.reason

        logging.info(f"Node {self.identity.address} starting (port {self.port}, control port {self.control_port})")
        try:
            self.control_server.start_in_background()
        except ServiceFault as e:
            self._state.terminate(TerminationReason.unrecoverable(str(e)))
            return self._state.reason

        try:
            reason = self._state.wait()
        finally:
            self.control_server.stop()

        logging.info(f"Node {self.identity.address} stopped: {reason}")
        return reason

    def handle_command(self, command: str) -> Iterable[str]:
        """Answer one control command with its response lines."""
        words = command.split()
        if not words:
            return []
        verb, rest = words[0], words[1:]

        if verb == "help":
            return [
                "200 help help",
                "200 help info",
                "200 help listpeers",
                "200 help listnetworks",
                "200 help terminate [<reason>]",
            ]
        if verb == "info":
            status = "ONLINE" if self.online else "OFFLINE"
            return [f"200 info {self.identity.address} {status} {__version__}"]
        if verb == "listpeers":
            return ["200 listpeers <ztaddr> <paths> <latency> <version>"]
        if verb == "listnetworks":
            return ["200 listnetworks <nwid> <name> <status> <config age> <type> <dev> <ips>"]
        if verb == "terminate":
            message = " ".join(rest) or None
            self.terminate(TerminationReason.normal(message))
            return ["200 terminating"]

        return [f"404 {command.strip()} No such command. Use 'help' for help."]
