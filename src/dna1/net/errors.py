# src/dna1/net/errors.py
"""
DNA1 — Error taxonomy

Every error carries a short machine-readable `code` (same convention as the
wire codec errors) plus a human-readable message.

Fatal (the session is destroyed and notified once):
  - BadHandshakeResponseError
  - HandshakeRejectedError
  - ProtocolViolationError

Recoverable (surfaced as error events, connection stays up):
  - OpenRejectedError
  - SignalRejectedError

Raised synchronously to the caller (no write attempted):
  - InvalidModeError
  - FrameTooLargeError
  - SessionClosedError
"""

from __future__ import annotations

from typing import Optional


class Dna1Error(RuntimeError):
    code = "dna1_error"

    def __init__(self, msg: str, *, code: Optional[str] = None) -> None:
        super().__init__(msg)
        if code is not None:
            self.code = code


# ---------------------------------------------------------------------
# Encode-side errors
# ---------------------------------------------------------------------


class InvalidModeError(Dna1Error, ValueError):
    code = "invalid_mode"

    def __init__(self, expr: object) -> None:
        super().__init__(f"Invalid mode: {expr!r}")
        self.expr = expr


class FrameTooLargeError(Dna1Error):
    code = "frame_too_large"

    def __init__(self, length: int, limit: int) -> None:
        super().__init__(f"Frame too large: {length} > {limit}")
        self.length = length
        self.limit = limit


class SessionClosedError(Dna1Error):
    code = "session_closed"


# ---------------------------------------------------------------------
# Handshake errors
# ---------------------------------------------------------------------


class HandshakeError(Dna1Error):
    code = "handshake_error"


class BadHandshakeResponseError(HandshakeError):
    code = "bad_handshake_response"

    def __init__(self, reason: str = "Bad handshake response packet.") -> None:
        super().__init__(reason)
        self.reason = reason


class HandshakeRejectedError(HandshakeError):
    """The server answered the handshake with a non-zero response code."""

    code = "handshake_rejected"

    def __init__(self, response_code: int) -> None:
        super().__init__(f"Handshake error #{response_code}")
        self.response_code = response_code


# ---------------------------------------------------------------------
# Frame-level errors
# ---------------------------------------------------------------------


class ProtocolViolationError(Dna1Error):
    code = "protocol_violation"

    def __init__(self, msg: str, *, opcode: Optional[int] = None) -> None:
        super().__init__(msg)
        self.opcode = opcode


class ChannelError(Dna1Error):
    """A per-channel error reported by the server. Never fatal."""

    kind = "Channel"

    def __init__(self, channel: int, response_code: int, message: str) -> None:
        text = f"{self.kind} Error #{response_code}"
        if message:
            text = f"{text} {message}"
        super().__init__(text)
        self.channel = channel
        self.response_code = response_code
        self.message = message


class OpenRejectedError(ChannelError):
    code = "open_rejected"
    kind = "Open"


class SignalRejectedError(ChannelError):
    code = "signal_rejected"
    kind = "Signal"


class OpenCancelledError(Dna1Error):
    """Handed to open continuations still pending when the session goes away."""

    code = "open_cancelled"

    def __init__(self, channel: int, cause: Optional[BaseException] = None) -> None:
        msg = f"Open on channel {channel} cancelled: session closed"
        if cause is not None:
            msg = f"{msg} ({cause})"
        super().__init__(msg)
        self.channel = channel
        self.cause = cause
