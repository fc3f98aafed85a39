from __future__ import annotations

from typing import Optional, Tuple


class ReassemblyWindow:
    """Carries the unconsumed tail of one delivery over to the next.

    feed() returns the bytes to parse: the new chunk itself when nothing is
    pending, otherwise a fresh copy of pending + chunk. After parsing, the
    caller hands back how far it got via consume().
    """

    __slots__ = ("_partial",)

    def __init__(self) -> None:
        self._partial: Optional[bytes] = None

    @property
    def pending(self) -> int:
        return len(self._partial) if self._partial is not None else 0

    def feed(self, data: bytes) -> Tuple[bytes, int]:
        if self._partial is None:
            window = bytes(data)
        else:
            window = self._partial + bytes(data)
            self._partial = None
        return window, len(window)

    def consume(self, window: bytes, consumed_upto: int) -> None:
        if consumed_upto >= len(window):
            self._partial = None
        else:
            self._partial = bytes(window[consumed_upto:])

    def clear(self) -> None:
        self._partial = None
