"""
Control channel wire protocol.

Messages are UTF-8 JSON objects, one per line. A request carries one command
line and the bearer auth token. The service answers with zero or more `line`
frames followed by exactly one `done` frame. Because every line of output is
framed, an empty line of output is ordinary content and never confused with the
end of the response.

    client -> service  {"type": "request", "data": {"command": "info", "auth_token": "...", "request_id": "..."}}
    service -> client  {"type": "line", "data": {"request_id": "...", "text": "200 info ..."}}
    service -> client  {"type": "done", "data": {"request_id": "..."}}

Protocol faults (malformed JSON, unknown type) are answered with an `error`
frame.
"""

import json
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

MESSAGE_DELIMITER = b"\n"
MAX_FRAME_SIZE = 65536


class MessageType(Enum):
    """Types of frames exchanged on the control channel."""

    REQUEST = "request"
    LINE = "line"
    DONE = "done"
    ERROR = "error"


class ProtocolError(ValueError):
    """A frame could not be decoded."""

    pass


def _new_request_id() -> str:
    return uuid.uuid4().hex


@dataclass
class ControlRequest:
    """Client → Service: one command line plus authentication.

    Attributes:
        command: Newline-free command string (positional words joined by spaces)
        auth_token: Bearer token the service compares against its own
        request_id: Identifier echoed back in every response frame
    """

    command: str
    auth_token: str
    request_id: str = field(default_factory=_new_request_id)

    def __post_init__(self) -> None:
        if "\n" in self.command or "\r" in self.command:
            raise ValueError("Control commands must not contain newlines")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ControlRequest":
        """Create ControlRequest from dictionary."""
        return cls(
            command=str(data["command"]),
            auth_token=str(data.get("auth_token", "")),
            request_id=str(data.get("request_id") or _new_request_id()),
        )


def encode_frame(msg_type: MessageType, data: dict[str, Any]) -> bytes:
    """Serialize one frame, including the trailing delimiter."""
    message = {"type": msg_type.value, "data": data}
    return json.dumps(message).encode("utf-8") + MESSAGE_DELIMITER


def decode_frame(frame: bytes) -> tuple[MessageType, dict[str, Any]]:
    """Parse one frame (without delimiter).

    Raises:
        ProtocolError: If the frame is not valid JSON or has an unknown type
    """
    try:
        message = json.loads(frame.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProtocolError(f"Invalid JSON: {e}") from e

    if not isinstance(message, dict):
        raise ProtocolError("Frame is not a JSON object")

    msg_type_str = message.get("type")
    if not msg_type_str:
        raise ProtocolError("Missing message type")
    try:
        msg_type = MessageType(msg_type_str)
    except ValueError as e:
        raise ProtocolError(f"Unknown message type: {msg_type_str}") from e

    data = message.get("data", {})
    if not isinstance(data, dict):
        raise ProtocolError("Frame data is not a JSON object")
    return msg_type, data


def request_frame(request: ControlRequest) -> bytes:
    return encode_frame(MessageType.REQUEST, request.to_dict())


def line_frame(request_id: str, text: str) -> bytes:
    return encode_frame(MessageType.LINE, {"request_id": request_id, "text": text})


def done_frame(request_id: str) -> bytes:
    return encode_frame(MessageType.DONE, {"request_id": request_id})


def error_frame(error: str, request_id: str | None = None) -> bytes:
    return encode_frame(MessageType.ERROR, {"request_id": request_id, "error": error})
