# src/dna1/net/codec.py
"""
DNA1 — Frame codec

Frame format (big-endian):
  [2-byte length][1-byte reserved=0][4-byte channel][1-byte op<<4 | flag][payload]

length counts the whole frame, header included, so it is always
HEADER_SIZE + len(payload) and must fit the 16-bit field.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Union

from dna1.net.errors import FrameTooLargeError, ProtocolViolationError


HEADER_SIZE = 8
LENGTH_PREFIX_SIZE = 2
MAX_FRAME_SIZE = 0xFFFF
MAX_PAYLOAD_SIZE = MAX_FRAME_SIZE - HEADER_SIZE
MAX_CHANNEL = 0xFFFFFFFF
MAX_SUBFLAG = 0x0F

_HEADER = struct.Struct(">HBIB")
_LENGTH = struct.Struct(">H")

PayloadLike = Union[bytes, bytearray, memoryview, str, None]


class Opcode(IntEnum):
    OPEN = 0x01
    DATA = 0x02
    SIGNAL = 0x03


@dataclass(frozen=True, slots=True)
class Frame:
    channel: int
    opcode: Opcode
    subflag: int
    payload: bytes = b""

    @property
    def wire_length(self) -> int:
        return HEADER_SIZE + len(self.payload)


def coerce_payload(payload: PayloadLike) -> bytes:
    """None -> b"", text -> UTF-8, bytes-like -> bytes."""
    if payload is None:
        return b""
    if isinstance(payload, str):
        return payload.encode("utf-8")
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return bytes(payload)
    raise TypeError(f"payload must be bytes or str, got {type(payload).__name__}")


def encode_frame(channel: int, opcode: int, subflag: int, payload: PayloadLike = None) -> bytes:
    data = coerce_payload(payload)

    length = HEADER_SIZE + len(data)
    if length > MAX_FRAME_SIZE:
        raise FrameTooLargeError(length, MAX_FRAME_SIZE)
    if isinstance(channel, bool) or not isinstance(channel, int) or not 0 <= channel <= MAX_CHANNEL:
        raise ValueError(f"channel must be an unsigned 32-bit integer, got {channel!r}")
    if not 0 <= int(subflag) <= MAX_SUBFLAG:
        raise ValueError(f"subflag must fit in 4 bits, got {subflag!r}")

    flag = (int(opcode) << 4) | int(subflag)
    return _HEADER.pack(length, 0, channel, flag) + data


def encode(frame: Frame) -> bytes:
    return encode_frame(frame.channel, frame.opcode, frame.subflag, frame.payload)


def read_frame_length(buf: bytes, offset: int = 0) -> Optional[int]:
    """Return the declared length at `offset`, or None if the prefix is incomplete."""
    if len(buf) - offset < LENGTH_PREFIX_SIZE:
        return None
    (n,) = _LENGTH.unpack_from(buf, offset)
    return n


def decode_frame(buf: bytes, offset: int = 0) -> Frame:
    """Decode one complete frame starting at `offset`.

    Raises ProtocolViolationError on a malformed length or an unknown opcode.
    Callers are expected to have checked that the whole frame is present.
    """
    length = read_frame_length(buf, offset)
    if length is None or len(buf) - offset < max(length, LENGTH_PREFIX_SIZE):
        raise ValueError("incomplete frame")
    if length < HEADER_SIZE:
        raise ProtocolViolationError(f"Server sent bad frame length {length}")

    _length, _reserved, channel, flag = _HEADER.unpack_from(buf, offset)
    op = flag >> 4
    try:
        opcode = Opcode(op)
    except ValueError:
        raise ProtocolViolationError(f"Server sent bad operator {op}", opcode=op) from None

    payload = bytes(buf[offset + HEADER_SIZE : offset + length])
    return Frame(channel=channel, opcode=opcode, subflag=flag & 0x0F, payload=payload)
