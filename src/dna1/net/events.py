from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True, slots=True)
class HandshakeCompleteEvent:
    hostname: str


@dataclass(frozen=True, slots=True)
class OpenEvent:
    """An OPEN frame nobody was waiting for (or a server-initiated open)."""

    channel: int
    code: int
    payload: bytes


@dataclass(frozen=True, slots=True)
class MessageEvent:
    channel: int
    priority: int
    payload: bytes


@dataclass(frozen=True, slots=True)
class SignalEvent:
    channel: int
    type: int
    payload: bytes


@dataclass(frozen=True, slots=True)
class ErrorEvent:
    error: BaseException
    fatal: bool


SessionEvent = Union[HandshakeCompleteEvent, OpenEvent, MessageEvent, SignalEvent, ErrorEvent]

EVENT_TYPES = (HandshakeCompleteEvent, OpenEvent, MessageEvent, SignalEvent, ErrorEvent)
