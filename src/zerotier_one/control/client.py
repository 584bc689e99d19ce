"""
Control Client - send one command to the running service and stream the reply.

The client opens a loopback TCP connection to the service's control port,
writes a single request frame and hands the connection to a reader thread. The
reader invokes the caller's per-line callback for every line frame, in arrival
order, and resolves a completion future when the done frame arrives. The caller
waits on that future with a timeout; on timeout the connection is closed and
the callback is never invoked again.

Example:
    >>> client = ControlClient(auth_token="secret", port=39393)
    >>> pending = client.send("info", on_line=print)
    >>> outcome = pending.wait(timeout=1.0)
    >>> if outcome.no_response:
    ...     print("service did not answer")
"""

import logging
import socket
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Callable

from zerotier_one.control.protocol import (
    MAX_FRAME_SIZE,
    MESSAGE_DELIMITER,
    ControlRequest,
    MessageType,
    ProtocolError,
    decode_frame,
    request_frame,
)
from zerotier_one.paths import DEFAULT_CONTROL_PORT

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_RESPONSE_TIMEOUT = 1.0
DEFAULT_CONNECT_TIMEOUT = 1.0
READ_CHUNK_SIZE = 4096

LineCallback = Callable[[str], None]


@dataclass
class ControlOutcome:
    """Result of waiting for a control response.

    Attributes:
        results: Number of response lines delivered to the callback
        completed: Whether the service signalled the end of the response
    """

    results: int
    completed: bool

    @property
    def no_response(self) -> bool:
        """True when no response line arrived, whether or not the service signalled completion."""
        return self.results == 0


class PendingResponse:
    """A request in flight: counts lines, resolves on completion, cancellable."""

    def __init__(self, request: ControlRequest, on_line: LineCallback) -> None:
        self.request = request
        self._on_line = on_line
        self._lock = threading.Lock()
        self._results = 0
        self._cancelled = False
        self._done: Future[bool] = Future()
        self._sock: socket.socket | None = None
        self._reader: threading.Thread | None = None

    @property
    def results(self) -> int:
        with self._lock:
            return self._results

    @property
    def completed(self) -> bool:
        return self._done.done() and not self._done.cancelled()

    def deliver_line(self, text: str) -> bool:
        """Forward one response line unless the request was cancelled.

        Returns:
            False if the request has been cancelled (reader should stop)
        """
        with self._lock:
            if self._cancelled:
                return False
            self._results += 1
            # Called under the lock so no line is delivered after cancel() returns
            self._on_line(text)
        return True

    def complete(self) -> None:
        with self._lock:
            if self._cancelled or self._done.done():
                return
            self._done.set_result(True)

    def wait(self, timeout: float | None = DEFAULT_RESPONSE_TIMEOUT) -> ControlOutcome:
        """Block until the response completes or the timeout elapses.

        On timeout the request is cancelled and its connection closed. A request
        whose connection already failed returns at once.
        """
        with self._lock:
            cancelled = self._cancelled
        if cancelled:
            return ControlOutcome(results=self.results, completed=self.completed)

        try:
            self._done.result(timeout=timeout)
        except FutureTimeoutError:
            logger.debug(f"Timed out waiting for response to {self.request.command!r}")
            self.cancel()
        return ControlOutcome(results=self.results, completed=self.completed)

    def cancel(self) -> None:
        """Stop delivering lines and close the connection."""
        with self._lock:
            self._cancelled = True
            sock = self._sock
        if sock is not None:
            _close_socket(sock)

    def attach(self, sock: socket.socket, reader: threading.Thread) -> None:
        with self._lock:
            self._sock = sock
            self._reader = reader

    def join(self, timeout: float | None = None) -> None:
        """Wait for the reader thread to exit."""
        if self._reader is not None:
            self._reader.join(timeout)


class ControlClient:
    """Client side of the control channel. One attempt per send(), no retries."""

    def __init__(
        self,
        auth_token: str,
        port: int = 0,
        host: str = DEFAULT_HOST,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ) -> None:
        """Initialize the ControlClient.

        Args:
            auth_token: Bearer token presented with every request
            port: Service control port (0 selects the default control port)
            host: Loopback address of the service
            connect_timeout: Seconds to wait for the TCP connection
        """
        self._auth_token = auth_token
        self._port = port or DEFAULT_CONTROL_PORT
        self._host = host
        self._connect_timeout = connect_timeout

    @property
    def port(self) -> int:
        return self._port

    def send(self, command: str, on_line: LineCallback) -> PendingResponse:
        """Send one command to the service.

        Connection failures are not raised: the returned request is already
        cancelled and never produces lines or completion, which the caller
        observes as no response.

        Args:
            command: Newline-free command string
            on_line: Called from the reader thread for each response line

        Returns:
            PendingResponse to wait on
        """
        pending = PendingResponse(ControlRequest(command=command, auth_token=self._auth_token), on_line)

        try:
            sock = socket.create_connection((self._host, self._port), timeout=self._connect_timeout)
        except OSError as e:
            logger.debug(f"Unable to connect to control port {self._host}:{self._port}: {e}")
            pending.cancel()
            return pending

        try:
            sock.settimeout(None)
            sock.sendall(request_frame(pending.request))
        except OSError as e:
            logger.debug(f"Unable to send control request: {e}")
            _close_socket(sock)
            pending.cancel()
            return pending

        reader = threading.Thread(
            target=_read_responses,
            args=(sock, pending),
            name="ControlClientReader",
            daemon=True,
        )
        pending.attach(sock, reader)
        reader.start()
        return pending


def _read_responses(sock: socket.socket, pending: PendingResponse) -> None:
    """Reader thread: decode frames and feed them to the pending request."""
    buffer = b""
    try:
        while True:
            try:
                data = sock.recv(READ_CHUNK_SIZE)
            except OSError:
                return  # closed by cancel() or by the peer
            if not data:
                return

            buffer += data
            if len(buffer) > MAX_FRAME_SIZE and MESSAGE_DELIMITER not in buffer:
                logger.warning("Oversized frame from service, dropping connection")
                return

            while MESSAGE_DELIMITER in buffer:
                frame, buffer = buffer.split(MESSAGE_DELIMITER, 1)
                if not frame:
                    continue
                if not _handle_frame(frame, pending):
                    return
    finally:
        _close_socket(sock)


def _handle_frame(frame: bytes, pending: PendingResponse) -> bool:
    """Apply one frame to the pending request. Returns False to stop reading."""
    try:
        msg_type, data = decode_frame(frame)
    except ProtocolError as e:
        logger.warning(f"Bad frame from service: {e}")
        return True

    request_id = data.get("request_id")
    if request_id is not None and request_id != pending.request.request_id:
        logger.debug(f"Ignoring frame for request {request_id}")
        return True

    if msg_type == MessageType.LINE:
        return pending.deliver_line(str(data.get("text", "")))
    if msg_type == MessageType.DONE:
        pending.complete()
        return False
    if msg_type == MessageType.ERROR:
        if pending.deliver_line(f"ERROR: {data.get('error', 'unknown error')}"):
            pending.complete()
        return False

    logger.debug(f"Ignoring unexpected {msg_type.value} frame")
    return True


def _close_socket(sock: socket.socket) -> None:
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass
    try:
        sock.close()
    except OSError:
        pass
