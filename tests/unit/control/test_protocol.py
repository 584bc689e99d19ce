"""
Unit tests for control channel framing.

Tests cover:
- Request frames carry command, token and request id
- Empty line text is ordinary content
- Malformed frames raise ProtocolError
- Commands containing newlines are rejected
"""

import json

import pytest

from zerotier_one.control.protocol import (
    MESSAGE_DELIMITER,
    ControlRequest,
    MessageType,
    ProtocolError,
    decode_frame,
    done_frame,
    error_frame,
    line_frame,
    request_frame,
)


@pytest.mark.unit
def test_request_frame_layout():
    request = ControlRequest(command="listpeers", auth_token="tok", request_id="abc")
    frame = request_frame(request)

    assert frame.endswith(MESSAGE_DELIMITER)
    assert frame.count(MESSAGE_DELIMITER) == 1
    assert json.loads(frame) == {
        "type": "request",
        "data": {"command": "listpeers", "auth_token": "tok", "request_id": "abc"},
    }


@pytest.mark.unit
def test_request_ids_are_unique():
    assert ControlRequest("info", "t").request_id != ControlRequest("info", "t").request_id


@pytest.mark.unit
def test_request_from_dict():
    request = ControlRequest.from_dict({"command": "info", "auth_token": "tok", "request_id": "r1"})
    assert request == ControlRequest(command="info", auth_token="tok", request_id="r1")


@pytest.mark.unit
def test_request_from_dict_requires_command():
    with pytest.raises(KeyError):
        ControlRequest.from_dict({"auth_token": "tok"})


@pytest.mark.unit
@pytest.mark.parametrize("command", ["info\nterminate", "info\r"])
def test_commands_with_newlines_rejected(command):
    with pytest.raises(ValueError):
        ControlRequest(command=command, auth_token="tok")


@pytest.mark.unit
def test_empty_line_is_content():
    msg_type, data = decode_frame(line_frame("r1", "").rstrip(MESSAGE_DELIMITER))
    assert msg_type == MessageType.LINE
    assert data == {"request_id": "r1", "text": ""}


@pytest.mark.unit
def test_done_and_error_frames():
    assert decode_frame(done_frame("r1").rstrip(MESSAGE_DELIMITER)) == (MessageType.DONE, {"request_id": "r1"})
    msg_type, data = decode_frame(error_frame("bad things").rstrip(MESSAGE_DELIMITER))
    assert msg_type == MessageType.ERROR
    assert data["error"] == "bad things"
    assert data["request_id"] is None


@pytest.mark.unit
@pytest.mark.parametrize(
    "frame",
    [
        b"not json",
        b"\xff\xfe",
        b"[1, 2, 3]",
        b'{"data": {}}',
        b'{"type": "bogus", "data": {}}',
        b'{"type": "line", "data": "text"}',
    ],
)
def test_malformed_frames(frame):
    with pytest.raises(ProtocolError):
        decode_frame(frame)
