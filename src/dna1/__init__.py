"""
DNA1 client: many logical channels over one TCP connection.

Example:
    from dna1 import create_connection, run_until, MessageEvent

    session, transport = create_connection("example.com", 7010)
    session.on(MessageEvent, lambda ev: print(ev.channel, ev.payload))
    run_until(transport, lambda: session.is_ready or session.closed, timeout_s=5)
    session.request_open(1, "rw")
"""

__version__ = "0.1.0"

from .config import ClientConfig, load_client_config
from .net.client import create_connection, run_until
from .net.codec import Frame, Opcode, encode_frame, decode_frame
from .net.errors import (
    BadHandshakeResponseError,
    Dna1Error,
    FrameTooLargeError,
    HandshakeError,
    HandshakeRejectedError,
    InvalidModeError,
    OpenCancelledError,
    OpenRejectedError,
    ProtocolViolationError,
    SessionClosedError,
    SignalRejectedError,
)
from .net.events import ErrorEvent, HandshakeCompleteEvent, MessageEvent, OpenEvent, SignalEvent
from .net.mode import EMIT, READ, READWRITE, WRITE, parse_mode
from .net.session import Session

__all__ = [
    "ClientConfig",
    "load_client_config",
    "create_connection",
    "run_until",
    "Session",
    "Frame",
    "Opcode",
    "encode_frame",
    "decode_frame",
    "parse_mode",
    "READ",
    "WRITE",
    "READWRITE",
    "EMIT",
    "HandshakeCompleteEvent",
    "OpenEvent",
    "MessageEvent",
    "SignalEvent",
    "ErrorEvent",
    "Dna1Error",
    "InvalidModeError",
    "FrameTooLargeError",
    "HandshakeError",
    "BadHandshakeResponseError",
    "HandshakeRejectedError",
    "ProtocolViolationError",
    "OpenRejectedError",
    "SignalRejectedError",
    "OpenCancelledError",
    "SessionClosedError",
]
