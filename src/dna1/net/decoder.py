# src/dna1/net/decoder.py
"""
DNA1 — Streaming frame decoder

Turns transport deliveries (arbitrary chunks of the byte stream) into
complete frames and hands each one to a dispatch callback, in wire order.

Per delivery:
  - fewer than 2 bytes at the cursor: keep the rest for next time
  - declared length not yet fully present: keep the rest for next time
  - otherwise decode, advance the cursor by the declared length, dispatch

An unknown opcode or a length smaller than the header raises
ProtocolViolationError at once; frames after it in the same delivery are
never dispatched and the window is discarded.
"""

from __future__ import annotations

from typing import Callable

from dna1.net.codec import HEADER_SIZE, Frame, decode_frame, read_frame_length
from dna1.net.errors import ProtocolViolationError
from dna1.net.reassembly import ReassemblyWindow

FrameHandler = Callable[[Frame], None]


class FrameDecoder:
    def __init__(self, on_frame: FrameHandler) -> None:
        self._on_frame = on_frame
        self._window = ReassemblyWindow()
        self._halted = False

    @property
    def pending(self) -> int:
        """Bytes of an incomplete frame carried over to the next delivery."""
        return self._window.pending

    @property
    def halted(self) -> bool:
        return self._halted

    def halt(self) -> None:
        """Stop dispatching, including the rest of a delivery in progress."""
        self._halted = True
        self._window.clear()

    def feed(self, data: bytes) -> int:
        """Consume one delivery. Returns the number of frames dispatched."""
        if self._halted:
            return 0

        buf, end = self._window.feed(data)
        pos = 0
        count = 0

        try:
            while pos < end and not self._halted:
                length = read_frame_length(buf, pos)
                if length is None:
                    break

                if length < HEADER_SIZE:
                    self.halt()
                    raise ProtocolViolationError(f"Server sent bad frame length {length}")

                if pos + length > end:
                    break

                try:
                    frame = decode_frame(buf, pos)
                except ProtocolViolationError:
                    self.halt()
                    raise

                pos += length
                count += 1
                self._on_frame(frame)
        finally:
            # A raising handler must not lose the bytes behind its frame.
            if not self._halted:
                self._window.consume(buf, pos)

        return count
