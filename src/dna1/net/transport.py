"""
DNA1 — Transport contract

The session only needs an ordered, reliable byte stream it can write to and
close. Whoever owns the socket (or a test harness) calls back into the
session:

  session.connection_made()        stream is ready, handshake goes out
  session.data_received(data)      next chunk of the stream, in order
  session.connection_lost(error)   stream is gone

This module is pure structure: no sockets here.
"""

from __future__ import annotations

from typing import Callable, Optional, Protocol, runtime_checkable

WriteCallback = Callable[[Optional[BaseException]], None]


@runtime_checkable
class Transport(Protocol):
    def write(self, data: bytes, on_complete: Optional[WriteCallback] = None) -> None:
        """Queue bytes for sending. on_complete(None) fires once they are flushed."""
        ...

    def close(self, error: Optional[BaseException] = None) -> None: ...

    def is_closing(self) -> bool: ...


@runtime_checkable
class StreamReceiver(Protocol):
    def connection_made(self) -> None: ...
    def data_received(self, data: bytes) -> None: ...
    def connection_lost(self, error: Optional[BaseException] = None) -> None: ...
