# src/dna1/net/transport_tcp.py
"""
DNA1 — TCP client transport

One outbound connection, pumped by poll():
  - non-blocking socket + selectors
  - TCP_NODELAY / SO_KEEPALIVE on by default
  - bounded outbound buffer
  - write completion callbacks fire once their bytes left the socket buffer

No framing here: every received chunk goes to the receiver as-is, the
session does its own reassembly.
"""

from __future__ import annotations

import logging
import os
import selectors
import socket
import time
from typing import Any, List, Optional, Tuple

from dna1.config import DEFAULT_CONNECT_TIMEOUT_S, DEFAULT_MAX_BUFFER_BYTES
from dna1.net.net_logging import log_event
from dna1.net.transport import StreamReceiver, WriteCallback


RECV_CHUNK = 65536


def tcp_uri(host: str, port: int) -> str:
    if ":" in host and not host.startswith("["):
        host = f"[{host}]"
    return f"tcp://{host}:{int(port)}"


class TcpTransport:
    def __init__(
        self,
        host: str,
        port: int,
        *,
        receiver: Optional[StreamReceiver] = None,
        connect_timeout_s: float = DEFAULT_CONNECT_TIMEOUT_S,
        max_buffer_bytes: int = DEFAULT_MAX_BUFFER_BYTES,
        nodelay: bool = True,
        keepalive: bool = True,
    ) -> None:
        self.host = host
        self.port = int(port)
        self.connect_timeout_s = float(connect_timeout_s)
        self.max_buffer_bytes = int(max_buffer_bytes)
        self.nodelay = bool(nodelay)
        self.keepalive = bool(keepalive)
        # resolved peer address, set by connect()
        self.address: Optional[Tuple[Any, ...]] = None

        self._receiver = receiver
        self._sel = selectors.DefaultSelector()
        self._sock: Optional[socket.socket] = None

        self._connecting = False
        self._connected = False
        self._closed = False
        self._deadline = 0.0

        self._wbuf = bytearray()
        # (cumulative end offset, callback) for queued writes
        self._write_waiters: List[Tuple[int, WriteCallback]] = []
        self._queued_total = 0
        self._flushed_total = 0

        self._logger = logging.getLogger("dna1.net.tcp")

    @property
    def uri(self) -> str:
        return tcp_uri(self.host, self.port)

    @property
    def connected(self) -> bool:
        return self._connected and not self._closed

    def attach(self, receiver: StreamReceiver) -> None:
        self._receiver = receiver

    # -------------------------
    # lifecycle
    # -------------------------

    def connect(self) -> None:
        if self._sock is not None:
            raise RuntimeError("already connected")

        # Name resolution blocks and is not covered by connect_timeout_s.
        infos = socket.getaddrinfo(self.host, self.port, type=socket.SOCK_STREAM)
        if not infos:
            raise OSError(f"no address for {self.uri}")
        family, socktype, proto, _canon, sockaddr = infos[0]
        self.address = sockaddr

        s = socket.socket(family, socktype, proto)
        s.setblocking(False)
        if self.nodelay:
            s.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        if self.keepalive:
            s.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)

        try:
            s.connect(sockaddr)
        except BlockingIOError:
            pass
        except OSError:
            s.close()
            raise

        self._sock = s
        self._connecting = True
        self._deadline = time.monotonic() + self.connect_timeout_s if self.connect_timeout_s > 0 else 0.0
        self._sel.register(s, selectors.EVENT_WRITE)
        log_event(self._logger, "tcp_connect", addr=self.uri, level=logging.DEBUG)

    def close(self, error: Optional[BaseException] = None) -> None:
        if self._closed:
            return
        self._closed = True
        self._connected = False
        self._connecting = False

        sock = self._sock
        if sock is not None:
            try:
                self._sel.unregister(sock)
            except (KeyError, ValueError):
                pass
            sock.close()
        self._sel.close()

        waiters = self._write_waiters
        self._write_waiters = []
        self._wbuf.clear()
        for _end, cb in waiters:
            cb(error or ConnectionError("connection closed before write completed"))

        log_event(self._logger, "tcp_closed", addr=self.uri, error=str(error) if error else None)

    def is_closing(self) -> bool:
        return self._closed

    # -------------------------
    # writes
    # -------------------------

    def write(self, data: bytes, on_complete: Optional[WriteCallback] = None) -> None:
        if self._closed or self._sock is None:
            raise ConnectionError("transport is not connected")
        if len(self._wbuf) + len(data) > self.max_buffer_bytes:
            raise BufferError(f"send buffer full: {len(self._wbuf) + len(data)} > {self.max_buffer_bytes}")

        self._wbuf.extend(data)
        self._queued_total += len(data)
        if on_complete is not None:
            self._write_waiters.append((self._queued_total, on_complete))

        if self._connected:
            self._update_interest()

    # -------------------------
    # polling
    # -------------------------

    def poll(self, timeout: float = 0.0) -> int:
        """Run one select() round. Returns the number of ready events handled."""
        if self._closed or self._sock is None:
            return 0

        if self._connecting and self._deadline and time.monotonic() > self._deadline:
            self._lost(TimeoutError(f"connect to {self.uri} timed out"))
            return 0

        events = self._sel.select(timeout=timeout)
        handled = 0
        for _key, mask in events:
            if self._closed:
                break
            handled += 1

            if self._connecting:
                if mask & selectors.EVENT_WRITE:
                    self._finish_connect()
                continue

            if mask & selectors.EVENT_READ:
                if not self._read_once():
                    break

            if mask & selectors.EVENT_WRITE and not self._closed:
                self._flush_out()

        return handled

    # -------------------------
    # internals
    # -------------------------

    def _finish_connect(self) -> None:
        assert self._sock is not None
        err = self._sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
        if err != 0:
            self._lost(ConnectionError(err, f"connect to {self.uri} failed: {os.strerror(err)}"))
            return

        self._connecting = False
        self._connected = True
        self._update_interest()
        log_event(self._logger, "tcp_connected", addr=self.uri, level=logging.DEBUG)

        if self._receiver is not None:
            self._receiver.connection_made()

    def _update_interest(self) -> None:
        if self._sock is None or self._closed:
            return
        mask = selectors.EVENT_READ
        if self._wbuf:
            mask |= selectors.EVENT_WRITE
        self._sel.modify(self._sock, mask)

    def _read_once(self) -> bool:
        assert self._sock is not None
        try:
            chunk = self._sock.recv(RECV_CHUNK)
        except BlockingIOError:
            return True
        except OSError as e:
            self._lost(e)
            return False

        if not chunk:
            self._lost(None)
            return False

        if self._receiver is not None:
            self._receiver.data_received(chunk)
        return True

    def _flush_out(self) -> None:
        assert self._sock is not None
        if not self._wbuf:
            self._update_interest()
            return
        try:
            sent = self._sock.send(self._wbuf)
        except BlockingIOError:
            return
        except OSError as e:
            self._lost(e)
            return

        if sent > 0:
            del self._wbuf[:sent]
            self._flushed_total += sent
            self._complete_writes()

        self._update_interest()

    def _complete_writes(self) -> None:
        done = 0
        for end, _cb in self._write_waiters:
            if end > self._flushed_total:
                break
            done += 1
        if not done:
            return
        ready = self._write_waiters[:done]
        del self._write_waiters[:done]
        for _end, cb in ready:
            cb(None)

    def _lost(self, error: Optional[BaseException]) -> None:
        self.close(error)
        if self._receiver is not None:
            self._receiver.connection_lost(error)
