# src/dna1/net/session.py
"""
DNA1 — Connection session

One Session per transport connection. It owns everything that is
per-connection: the handshake negotiator, the frame decoder (and with it the
reassembly window), the pending-open registry and the listener list.

Inbound:
  transport -> data_received() -> handshake (until accepted)
                               -> frame decoder -> _dispatch() -> listeners

Outbound:
  request_open / send_data / send_signal -> encode_frame -> transport.write

Events delivered to listeners, in wire order:
  HandshakeCompleteEvent, OpenEvent, MessageEvent, SignalEvent, ErrorEvent

Fatal conditions (handshake failure, protocol violation, transport write
failure) destroy the session and produce exactly one fatal ErrorEvent.
Server-reported open/signal errors are not fatal; with surface_errors off
they are dropped.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Type, TypeVar

from dna1.metrics import inc_counter
from dna1.net.codec import Frame, Opcode, PayloadLike, encode_frame
from dna1.net.decoder import FrameDecoder
from dna1.net.errors import (
    ChannelError,
    HandshakeError,
    OpenCancelledError,
    OpenRejectedError,
    ProtocolViolationError,
    SessionClosedError,
    SignalRejectedError,
)
from dna1.net.events import (
    EVENT_TYPES,
    ErrorEvent,
    HandshakeCompleteEvent,
    MessageEvent,
    OpenEvent,
    SessionEvent,
    SignalEvent,
)
from dna1.net.handshake import HandshakeNegotiator, HandshakePhase
from dna1.net.mode import parse_mode
from dna1.net.net_logging import log_event
from dna1.net.transport import Transport, WriteCallback


# Highest OPEN response code that still means "opened"; above it the server refused.
OPEN_MAX_SUCCESS_CODE = 2
# Highest SIGNAL type that is a regular signal; above it the server reports an error.
SIGNAL_MAX_TYPE = 1

# Called as (channel, code, payload, None) when the OPEN response arrives, or
# (channel, None, b"", OpenCancelledError) if the session goes away first.
OpenCallback = Callable[[int, Optional[int], bytes, Optional[BaseException]], None]
Listener = Callable[[SessionEvent], None]

E = TypeVar("E")


def _payload_text(payload: bytes) -> str:
    return payload.decode("utf-8", errors="replace")


class Session:
    def __init__(
        self,
        transport: Transport,
        *,
        hostname: str,
        surface_errors: bool = True,
    ) -> None:
        self.transport = transport
        self.surface_errors = bool(surface_errors)

        self._handshake = HandshakeNegotiator(hostname)
        self._decoder = FrameDecoder(self._dispatch)
        self._open_callbacks: Dict[int, List[OpenCallback]] = {}
        self._listeners: List[Listener] = []

        self._closed = False
        self.close_error: Optional[BaseException] = None

        self._logger = logging.getLogger("dna1.net")

    # -------------------------
    # state
    # -------------------------

    @property
    def hostname(self) -> str:
        return self._handshake.hostname

    @property
    def phase(self) -> HandshakePhase:
        return self._handshake.phase

    @property
    def is_ready(self) -> bool:
        return self._handshake.phase == HandshakePhase.HANDSHAKE_OK and not self._closed

    @property
    def closed(self) -> bool:
        return self._closed

    def pending_opens(self) -> Dict[int, int]:
        """Channel -> number of continuations still waiting for an OPEN response."""
        return {ch: len(cbs) for ch, cbs in self._open_callbacks.items()}

    # -------------------------
    # listeners
    # -------------------------

    def add_listener(self, listener: Listener) -> Listener:
        self._listeners.append(listener)
        return listener

    def remove_listener(self, listener: Listener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def on(self, kind: Type[E], fn: Callable[[E], None]) -> Listener:
        """Subscribe to one event class. Returns the listener for remove_listener()."""
        if kind not in EVENT_TYPES:
            raise TypeError(f"not a session event type: {kind!r}")

        def _only(event: SessionEvent) -> None:
            if isinstance(event, kind):
                fn(event)

        return self.add_listener(_only)

    def _emit(self, event: SessionEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    # -------------------------
    # transport callbacks
    # -------------------------

    def connection_made(self) -> None:
        if self._closed:
            return
        request = self._handshake.begin()
        if self._write(request):
            log_event(self._logger, "handshake_sent", host=self.hostname, level=logging.DEBUG)

    def data_received(self, data: bytes) -> None:
        if self._closed or not data:
            return

        inc_counter("dna1_bytes_received_total", len(data))

        if self._handshake.phase != HandshakePhase.HANDSHAKE_OK:
            self._handshake_data(data)
            return

        try:
            self._decoder.feed(data)
        except ProtocolViolationError as e:
            inc_counter("dna1_protocol_violation_total", 1)
            log_event(self._logger, "protocol_violation", level=logging.WARNING, error=str(e), opcode=e.opcode)
            self.destroy(e)

    def connection_lost(self, error: Optional[BaseException] = None) -> None:
        if self._closed:
            return
        log_event(self._logger, "connection_lost", host=self.hostname, error=str(error) if error else None)
        self.destroy(error)

    def _handshake_data(self, data: bytes) -> None:
        try:
            accepted = self._handshake.feed(data)
        except HandshakeError as e:
            inc_counter("dna1_handshake_failed_total", 1)
            log_event(self._logger, "handshake_failed", level=logging.WARNING, host=self.hostname, error=str(e), code=e.code)
            self.destroy(e)
            return

        if not accepted:
            return

        inc_counter("dna1_handshake_ok_total", 1)
        log_event(self._logger, "handshake_ok", host=self.hostname)
        self._emit(HandshakeCompleteEvent(hostname=self.hostname))

    # -------------------------
    # dispatch
    # -------------------------

    def _dispatch(self, frame: Frame) -> None:
        inc_counter("dna1_frames_received_total", 1, op=frame.opcode.name)
        ch, flag, payload = frame.channel, frame.subflag, frame.payload

        if frame.opcode == Opcode.OPEN:
            callbacks = self._open_callbacks.pop(ch, None)
            if callbacks:
                for cb in callbacks:
                    cb(ch, flag, payload, None)
                return
            if flag > OPEN_MAX_SUCCESS_CODE:
                self._channel_error(OpenRejectedError(ch, flag, _payload_text(payload)))
                return
            self._emit(OpenEvent(channel=ch, code=flag, payload=payload))
            return

        if frame.opcode == Opcode.DATA:
            self._emit(MessageEvent(channel=ch, priority=flag, payload=payload))
            return

        if frame.opcode == Opcode.SIGNAL:
            if flag > SIGNAL_MAX_TYPE:
                self._channel_error(SignalRejectedError(ch, flag, _payload_text(payload)))
                return
            self._emit(SignalEvent(channel=ch, type=flag, payload=payload))
            return

        # decode_frame only yields known opcodes
        raise ProtocolViolationError(f"Server sent bad operator {int(frame.opcode)}", opcode=int(frame.opcode))

    def _channel_error(self, err: ChannelError) -> None:
        inc_counter("dna1_channel_errors_total", 1, kind=err.code)
        log_event(
            self._logger,
            err.code,
            level=logging.INFO if self.surface_errors else logging.DEBUG,
            channel=err.channel,
            response_code=err.response_code,
            message=err.message,
            surfaced=self.surface_errors,
        )
        if self.surface_errors:
            self._emit(ErrorEvent(error=err, fatal=False))

    # -------------------------
    # outbound
    # -------------------------

    def request_open(
        self,
        channel: int,
        mode: Optional[str],
        payload: PayloadLike = None,
        callback: Optional[OpenCallback] = None,
    ) -> bool:
        """Ask the server to open `channel`.

        `callback`, if given, fires once with the server's OPEN response for
        this channel. Returns False if the write failed (the session is then
        destroyed).
        """
        bits = parse_mode(mode)
        packet = encode_frame(channel, Opcode.OPEN, bits, payload)
        self._require_open()

        if callback is not None:
            self._open_callbacks.setdefault(channel, []).append(callback)

        return self._write(packet, op=Opcode.OPEN)

    def send_data(
        self,
        channel: int,
        priority: int,
        payload: PayloadLike = None,
        callback: Optional[WriteCallback] = None,
    ) -> bool:
        packet = encode_frame(channel, Opcode.DATA, priority, payload)
        self._require_open()
        return self._write(packet, callback, op=Opcode.DATA)

    def send_signal(
        self,
        channel: int,
        type: int,
        payload: PayloadLike = None,
        callback: Optional[WriteCallback] = None,
    ) -> bool:
        packet = encode_frame(channel, Opcode.SIGNAL, type, payload)
        self._require_open()
        return self._write(packet, callback, op=Opcode.SIGNAL)

    def _require_open(self) -> None:
        if self._closed:
            raise SessionClosedError("session is closed")
        if self._handshake.phase == HandshakePhase.AWAITING_TRANSPORT:
            raise SessionClosedError("session is not connected yet")

    def _write(self, data: bytes, on_complete: Optional[WriteCallback] = None, *, op: Optional[Opcode] = None) -> bool:
        try:
            self.transport.write(data, on_complete)
        except Exception as e:
            log_event(self._logger, "write_failed", level=logging.WARNING, error=str(e))
            try:
                self.destroy(e)
            finally:
                if on_complete is not None:
                    on_complete(e)
            return False

        inc_counter("dna1_bytes_sent_total", len(data))
        if op is not None:
            inc_counter("dna1_frames_sent_total", 1, op=op.name)
        return True

    # -------------------------
    # teardown
    # -------------------------

    def destroy(self, error: Optional[BaseException] = None) -> None:
        """Tear the session down. Idempotent.

        Pending open continuations are called with OpenCancelledError. A
        non-None `error` is reported once as a fatal ErrorEvent.
        """
        if self._closed:
            return
        self._closed = True
        self.close_error = error
        self._decoder.halt()

        pending = self._open_callbacks
        self._open_callbacks = {}

        inc_counter("dna1_sessions_destroyed_total", 1)
        log_event(
            self._logger,
            "session_destroyed",
            host=self.hostname,
            error=str(error) if error is not None else None,
            pending_opens=sum(len(cbs) for cbs in pending.values()),
        )

        self.transport.close(error)

        try:
            if error is not None:
                self._emit(ErrorEvent(error=error, fatal=True))
        finally:
            # a raising listener must not strand pending opens
            for ch, callbacks in pending.items():
                cancelled = OpenCancelledError(ch, error)
                for cb in callbacks:
                    cb(ch, None, b"", cancelled)
