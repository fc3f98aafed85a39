from __future__ import annotations

from typing import List, Optional, Tuple

from dna1.net.transport import StreamReceiver, WriteCallback


class InMemoryTransport:
    """
    Minimal in-process transport used for unit tests and harnesses.

    - Does not open sockets
    - Records every write so tests can decode what the session sent
    - Deliveries are injected by the test, one chunk per call, in order
    """

    def __init__(self, *, auto_complete: bool = True) -> None:
        self.auto_complete = auto_complete
        self.fail_with: Optional[BaseException] = None

        self.closed = False
        self.close_error: Optional[BaseException] = None

        self._receiver: Optional[StreamReceiver] = None
        self._out: List[bytes] = []
        self._pending: List[Tuple[WriteCallback, int]] = []

    # ---- transport contract ----

    def write(self, data: bytes, on_complete: Optional[WriteCallback] = None) -> None:
        if self.closed:
            raise ConnectionError("transport closed")
        if self.fail_with is not None:
            raise self.fail_with
        self._out.append(bytes(data))
        if on_complete is not None:
            if self.auto_complete:
                on_complete(None)
            else:
                self._pending.append((on_complete, len(self._out)))

    def close(self, error: Optional[BaseException] = None) -> None:
        if self.closed:
            return
        self.closed = True
        self.close_error = error

    def is_closing(self) -> bool:
        return self.closed

    # ---- helpers for tests / harness ----

    def attach(self, receiver: StreamReceiver) -> None:
        self._receiver = receiver

    def open(self) -> None:
        self._require_receiver().connection_made()

    def flush(self) -> int:
        """Complete deferred writes. Returns how many callbacks fired."""
        pending = list(self._pending)
        self._pending.clear()
        for cb, _idx in pending:
            cb(None)
        return len(pending)

    def drain(self) -> List[bytes]:
        out = list(self._out)
        self._out.clear()
        return out

    @property
    def written(self) -> bytes:
        return b"".join(self._out)

    def _inject(self, data: bytes) -> None:
        self._require_receiver().data_received(bytes(data))

    def _inject_chunks(self, chunks: List[bytes]) -> None:
        for chunk in chunks:
            self._inject(chunk)

    def _remote_close(self, error: Optional[BaseException] = None) -> None:
        self.closed = True
        self._require_receiver().connection_lost(error)

    def _require_receiver(self) -> StreamReceiver:
        if self._receiver is None:
            raise RuntimeError("no receiver attached")
        return self._receiver
