"""
Loopback control channel between zerotier-cli and the running service.
"""

from zerotier_one.control.client import ControlClient, ControlOutcome, PendingResponse
from zerotier_one.control.protocol import ControlRequest, MessageType, ProtocolError
from zerotier_one.control.server import ControlServer

__all__ = [
    "ControlClient",
    "ControlOutcome",
    "ControlRequest",
    "ControlServer",
    "MessageType",
    "PendingResponse",
    "ProtocolError",
]
