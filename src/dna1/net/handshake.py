# src/dna1/net/handshake.py
"""
DNA1 — Connection handshake

Request (client -> server):
  [4-byte magic "DNA1"][1-byte host length][host, ASCII]

Response (server -> client), exactly 5 bytes:
  [4-byte magic echo][1-byte code]     code 0 = accepted

Lifecycle:
  AWAITING_TRANSPORT -> HANDSHAKE_SENT -> HANDSHAKE_OK
                                       -> HANDSHAKE_FAILED

Runs once per connection. No transport I/O here: begin() returns the bytes
to write and feed() takes whatever the transport delivered.
"""

from __future__ import annotations

from enum import Enum
from typing import NoReturn, Optional

from dna1.net.errors import BadHandshakeResponseError, HandshakeError, HandshakeRejectedError
from dna1.net.reassembly import ReassemblyWindow


HANDSHAKE_MAGIC = b"DNA1"
HANDSHAKE_RESPONSE_SIZE = len(HANDSHAKE_MAGIC) + 1
HANDSHAKE_CODE_OFFSET = 4
MAX_HOSTNAME_LENGTH = 0xFF


class HandshakePhase(str, Enum):
    AWAITING_TRANSPORT = "AWAITING_TRANSPORT"
    HANDSHAKE_SENT = "HANDSHAKE_SENT"
    HANDSHAKE_OK = "HANDSHAKE_OK"
    HANDSHAKE_FAILED = "HANDSHAKE_FAILED"


def build_handshake_request(hostname: str) -> bytes:
    if not isinstance(hostname, str) or not hostname:
        raise ValueError("hostname must be a non-empty string")
    try:
        host = hostname.encode("ascii")
    except UnicodeEncodeError as e:
        raise ValueError(f"hostname must be ASCII: {hostname!r}") from e
    if len(host) > MAX_HOSTNAME_LENGTH:
        raise ValueError(f"hostname too long: {len(host)} > {MAX_HOSTNAME_LENGTH}")
    return HANDSHAKE_MAGIC + bytes([len(host)]) + host


class HandshakeNegotiator:
    def __init__(self, hostname: str) -> None:
        # Validate eagerly so a bad host name fails before connecting.
        self._request = build_handshake_request(hostname)
        self.hostname = hostname
        self.phase = HandshakePhase.AWAITING_TRANSPORT
        self.last_error: Optional[HandshakeError] = None
        self._window = ReassemblyWindow()

    @property
    def done(self) -> bool:
        return self.phase in (HandshakePhase.HANDSHAKE_OK, HandshakePhase.HANDSHAKE_FAILED)

    def begin(self) -> bytes:
        """Transport is ready: return the request bytes and wait for the answer."""
        if self.phase != HandshakePhase.AWAITING_TRANSPORT:
            raise HandshakeError(f"handshake already started ({self.phase.value})")
        self.phase = HandshakePhase.HANDSHAKE_SENT
        return self._request

    def feed(self, data: bytes) -> bool:
        """Accumulate response bytes.

        Returns True once the server accepted, False while more bytes are
        needed. Raises BadHandshakeResponseError or HandshakeRejectedError
        on failure.
        """
        if self.phase != HandshakePhase.HANDSHAKE_SENT:
            raise HandshakeError(f"unexpected handshake data in phase {self.phase.value}")

        buf, n = self._window.feed(data)

        if n > HANDSHAKE_RESPONSE_SIZE:
            self._fail(BadHandshakeResponseError())

        echoed = buf[: min(n, len(HANDSHAKE_MAGIC))]
        if echoed != HANDSHAKE_MAGIC[: len(echoed)]:
            self._fail(BadHandshakeResponseError(f"Bad handshake magic: {bytes(echoed)!r}"))

        if n < HANDSHAKE_RESPONSE_SIZE:
            self._window.consume(buf, 0)
            return False

        self._window.clear()
        code = buf[HANDSHAKE_CODE_OFFSET]
        if code != 0:
            self._fail(HandshakeRejectedError(code))

        self.phase = HandshakePhase.HANDSHAKE_OK
        return True

    def _fail(self, err: HandshakeError) -> NoReturn:
        self._window.clear()
        self.phase = HandshakePhase.HANDSHAKE_FAILED
        self.last_error = err
        raise err
