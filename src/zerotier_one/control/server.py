"""
Control Server - Asyncio-based loopback TCP server for control requests.

The running service answers `zerotier-cli` requests through this server. It:

- Listens on 127.0.0.1 only (the control port is a local, per-home resource)
- Reads newline-delimited JSON frames (see control.protocol)
- Authenticates every request against the service auth token
- Streams the command handler's output back as line frames, then a done frame

The server runs its own event loop in a background thread so the service's main
thread stays free to block in start-and-wait.

Example:
    >>> server = ControlServer(auth_token="secret", handler=node.handle_command, port=39393)
    >>> server.start_in_background()
    >>> # ... service runs ...
    >>> server.stop()
"""

from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Callable, Iterable

from zerotier_one.control.auth import tokens_match
from zerotier_one.control.protocol import (
    MAX_FRAME_SIZE,
    MESSAGE_DELIMITER,
    ControlRequest,
    MessageType,
    ProtocolError,
    decode_frame,
    done_frame,
    error_frame,
    line_frame,
)
from zerotier_one.errors import ServiceFault

DEFAULT_HOST = "127.0.0.1"
DEFAULT_READ_TIMEOUT = 30.0
DEFAULT_WRITE_TIMEOUT = 10.0
DEFAULT_STARTUP_TIMEOUT = 5.0
DRAIN_TIMEOUT = 1.0
DRAIN_POLL_INTERVAL = 0.01

AUTH_FAILED_MESSAGE = "ERROR: authentication failed"

CommandHandler = Callable[[str], Iterable[str]]


@dataclass
class ControlConnection:
    """A connected control client.

    Attributes:
        connection_id: Unique identifier for logging
        reader: Asyncio stream reader for receiving frames
        writer: Asyncio stream writer for sending frames
        address: Peer address
        lock: Serializes writes to the writer
    """

    connection_id: str
    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter
    address: tuple[str, int]
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class ControlServer:
    """Asyncio-based loopback server answering authenticated control commands."""

    def __init__(
        self,
        auth_token: str,
        handler: CommandHandler,
        port: int,
        host: str = DEFAULT_HOST,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
    ) -> None:
        """Initialize the ControlServer.

        Args:
            auth_token: Token every request must present
            handler: Called with the command string, returns the response lines
            port: Port to bind (0 picks an ephemeral port)
            host: Host to bind (loopback)
            read_timeout: Idle seconds before a connection is closed
        """
        self._auth_token = auth_token
        self._handler = handler
        self._host = host
        self._port = port
        self._read_timeout = read_timeout

        self._server: asyncio.Server | None = None
        self._connections: dict[str, ControlConnection] = {}
        self._in_flight = 0
        self._is_running = False
        self._shutdown_event: asyncio.Event | None = None
        self._ready = threading.Event()
        self._startup_error: BaseException | None = None

        self._background_thread: threading.Thread | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def port(self) -> int:
        """Bound port (the real port once started, even if 0 was requested)."""
        return self._port

    async def start(self) -> None:
        """Start accepting connections and block until stop() is called."""
        if self._is_running:
            logging.warning("ControlServer already running")
            return

        self._is_running = True
        self._shutdown_event = asyncio.Event()

        try:
            self._server = await asyncio.start_server(
                self._handle_client_connection,
                self._host,
                self._port,
                limit=MAX_FRAME_SIZE,
            )
            if self._server.sockets:
                self._port = self._server.sockets[0].getsockname()[1]
            logging.info(f"ControlServer listening on {self._host}:{self._port}")
            self._ready.set()

            await self._shutdown_event.wait()
        except OSError as e:
            self._startup_error = e
            logging.error(f"ControlServer failed to bind {self._host}:{self._port}: {e}")
            raise
        finally:
            self._ready.set()
            await self._cleanup()

    def start_in_background(self, startup_timeout: float = DEFAULT_STARTUP_TIMEOUT) -> None:
        """Start the server in a background thread and wait until it listens.

        Raises:
            ServiceFault: If the server cannot bind or does not come up in time
        """
        if self._is_running:
            logging.warning("ControlServer already running")
            return

        def run_loop() -> None:
            self._loop = asyncio.new_event_loop()
            asyncio.set_event_loop(self._loop)
            try:
                self._loop.run_until_complete(self.start())
            except OSError:
                pass  # recorded in _startup_error and reported by start_in_background()
            except Exception as e:
                logging.error(f"Background server error: {e}", exc_info=True)
            finally:
                self._loop.close()

        self._background_thread = threading.Thread(
            target=run_loop,
            name="ControlServer",
            daemon=True,
        )
        self._background_thread.start()

        if not self._ready.wait(startup_timeout):
            self.stop()
            raise ServiceFault(f"control server did not start within {startup_timeout}s")
        if self._startup_error is not None:
            self._background_thread.join(timeout=1.0)
            raise ServiceFault(f"unable to bind control port {self._port}: {self._startup_error}")
        logging.info("ControlServer started in background thread")

    def stop(self) -> None:
        """Stop the server and close all client connections. Safe to call from any thread."""
        if not self._is_running:
            return

        logging.info("Stopping ControlServer...")

        if self._loop and self._shutdown_event and not self._loop.is_closed():
            try:
                self._loop.call_soon_threadsafe(self._shutdown_event.set)
            except RuntimeError:
                pass  # loop already closed

        if self._background_thread and self._background_thread.is_alive():
            self._background_thread.join(timeout=5.0)
            if self._background_thread.is_alive():
                logging.warning("Background thread did not stop cleanly")

        self._is_running = False
        logging.info("ControlServer stopped")

    async def _cleanup(self) -> None:
        # Let requests already being answered finish writing their response
        loop = asyncio.get_running_loop()
        deadline = loop.time() + DRAIN_TIMEOUT
        while self._in_flight and loop.time() < deadline:
            await asyncio.sleep(DRAIN_POLL_INTERVAL)

        for connection in list(self._connections.values()):
            await self._close_connection(connection)
        self._connections.clear()

        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

        self._is_running = False

    async def _handle_client_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        addr = writer.get_extra_info("peername")
        connection = ControlConnection(
            connection_id=uuid.uuid4().hex[:8],
            reader=reader,
            writer=writer,
            address=addr if addr else ("unknown", 0),
        )
        self._connections[connection.connection_id] = connection
        logging.debug(f"Control connection {connection.connection_id} from {connection.address}")

        try:
            await self._process_frames(connection)
        except asyncio.CancelledError:
            logging.debug(f"Control connection {connection.connection_id} cancelled")
        except Exception as e:
            logging.error(f"Error handling control connection {connection.connection_id}: {e}", exc_info=True)
        finally:
            self._connections.pop(connection.connection_id, None)
            await self._close_connection(connection)

    async def _process_frames(self, connection: ControlConnection) -> None:
        while True:
            try:
                frame = await asyncio.wait_for(connection.reader.readuntil(MESSAGE_DELIMITER), timeout=self._read_timeout)
            except asyncio.TimeoutError:
                logging.debug(f"Control connection {connection.connection_id} idle, closing")
                return
            except asyncio.IncompleteReadError:
                # Peer closed the connection
                return
            except asyncio.LimitOverrunError:
                await self._send(connection, error_frame("Frame too large"))
                return

            frame = frame.rstrip(MESSAGE_DELIMITER)
            if frame:
                await self._process_frame(connection, frame)

    async def _process_frame(self, connection: ControlConnection, frame: bytes) -> None:
        try:
            msg_type, data = decode_frame(frame)
        except ProtocolError as e:
            logging.warning(f"Bad frame from {connection.connection_id}: {e}")
            await self._send(connection, error_frame(str(e)))
            return

        if msg_type != MessageType.REQUEST:
            await self._send(connection, error_frame(f"Unexpected message type: {msg_type.value}"))
            return

        try:
            request = ControlRequest.from_dict(data)
        except (KeyError, ValueError) as e:
            await self._send(connection, error_frame(f"Malformed request: {e}", data.get("request_id")))
            return

        if not tokens_match(self._auth_token, request.auth_token):
            logging.warning(f"Rejected control request from {connection.connection_id}: bad auth token")
            await self._send(connection, line_frame(request.request_id, AUTH_FAILED_MESSAGE))
            await self._send(connection, done_frame(request.request_id))
            return

        logging.debug(f"Control command from {connection.connection_id}: {request.command!r}")
        self._in_flight += 1
        try:
            try:
                lines = list(self._handler(request.command))
            except Exception as e:
                logging.error(f"Control command {request.command!r} failed: {e}", exc_info=True)
                lines = [f"500 {request.command} {e}"]

            for text in lines:
                if not await self._send(connection, line_frame(request.request_id, text)):
                    return
            await self._send(connection, done_frame(request.request_id))
        finally:
            self._in_flight -= 1

    async def _send(self, connection: ControlConnection, payload: bytes) -> bool:
        try:
            async with connection.lock:
                connection.writer.write(payload)
                await asyncio.wait_for(connection.writer.drain(), timeout=DEFAULT_WRITE_TIMEOUT)
            return True
        except asyncio.TimeoutError:
            logging.warning(f"Timeout sending to control connection {connection.connection_id}")
            return False
        except (ConnectionError, OSError) as e:
            logging.debug(f"Control connection {connection.connection_id} went away: {e}")
            return False

    async def _close_connection(self, connection: ControlConnection) -> None:
        try:
            connection.writer.close()
            await connection.writer.wait_closed()
        except (ConnectionError, OSError):
            pass
