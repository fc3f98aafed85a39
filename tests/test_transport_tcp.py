from __future__ import annotations

import socket
import threading
from typing import Any, Dict, List

import pytest

from dna1.config import ClientConfig
from dna1.net.client import create_connection, handshake_hostname, run_until
from dna1.net.codec import Opcode, decode_frame, encode_frame
from dna1.net.events import ErrorEvent, HandshakeCompleteEvent, MessageEvent
from dna1.net.transport_tcp import TcpTransport, tcp_uri


def _recv_exact(conn: socket.socket, n: int) -> bytes:
    buf = b""
    while len(buf) < n:
        chunk = conn.recv(n - len(buf))
        if not chunk:
            raise ConnectionError("peer closed")
        buf += chunk
    return buf


def _recv_frame(conn: socket.socket) -> bytes:
    head = _recv_exact(conn, 2)
    length = int.from_bytes(head, "big")
    return head + _recv_exact(conn, length - 2)


class _Server:
    """One-shot DNA1 server on 127.0.0.1 driven by a script of steps."""

    def __init__(self) -> None:
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.listen(1)
        self.sock.settimeout(5.0)
        self.port = self.sock.getsockname()[1]
        self.seen: Dict[str, Any] = {}
        self.error: List[BaseException] = []
        self._thread = threading.Thread(target=self._run, daemon=True)

    def start(self) -> "_Server":
        self._thread.start()
        return self

    def join(self) -> None:
        self._thread.join(timeout=5.0)
        self.sock.close()
        if self.error:
            raise self.error[0]

    def _run(self) -> None:
        try:
            conn, _addr = self.sock.accept()
            with conn:
                conn.settimeout(5.0)
                self.seen["handshake"] = _recv_exact(conn, 16)
                conn.sendall(b"DNA1\x00")

                self.seen["open"] = _recv_frame(conn)
                conn.sendall(
                    encode_frame(7, Opcode.OPEN, 1, b"welcome")
                    + encode_frame(7, Opcode.DATA, 3, b"hi there")
                )

                self.seen["data"] = _recv_frame(conn)
        except BaseException as e:  # surfaced by join()
            self.error.append(e)


def test_tcp_uri() -> None:
    assert tcp_uri("127.0.0.1", 7010) == "tcp://127.0.0.1:7010"
    assert tcp_uri("::1", 7010) == "tcp://[::1]:7010"


def test_handshake_hostname_fallbacks() -> None:
    assert handshake_hostname("10.0.0.1", ClientConfig(hostname="example.com")) == "example.com"
    assert handshake_hostname("10.0.0.1", ClientConfig()) == "10.0.0.1"
    assert handshake_hostname("", ClientConfig()) == "localhost"


def test_round_trip_over_loopback() -> None:
    server = _Server().start()

    ready: List[HandshakeCompleteEvent] = []
    session, transport = create_connection(
        "127.0.0.1",
        server.port,
        ClientConfig(hostname="example.com", connect_timeout_s=5.0),
        on_handshake=ready.append,
    )
    events: List[Any] = []
    session.add_listener(events.append)

    assert run_until(transport, lambda: session.is_ready or session.closed, timeout_s=5.0)
    assert session.is_ready
    assert ready == [HandshakeCompleteEvent(hostname="example.com")]

    opened: List[Any] = []
    session.request_open(7, "rw", b"tok", lambda ch, code, payload, err: opened.append((ch, code, payload, err)))

    def _got_message() -> bool:
        return any(isinstance(e, MessageEvent) for e in events)

    assert run_until(transport, lambda: bool(opened) and _got_message(), timeout_s=5.0)
    assert opened == [(7, 1, b"welcome", None)]
    assert MessageEvent(channel=7, priority=3, payload=b"hi there") in events

    done: List[Any] = []
    assert session.send_data(7, 0, b"bye", done.append)
    assert run_until(transport, lambda: bool(done), timeout_s=5.0)
    assert done == [None]

    # server hangs up after reading our DATA frame
    assert run_until(transport, lambda: session.closed, timeout_s=5.0)
    server.join()

    assert not any(isinstance(e, ErrorEvent) for e in events)
    assert server.seen["handshake"] == b"DNA1\x0bexample.com"

    f = decode_frame(server.seen["open"])
    assert (f.channel, f.opcode, f.subflag, f.payload) == (7, Opcode.OPEN, 3, b"tok")
    f = decode_frame(server.seen["data"])
    assert (f.channel, f.opcode, f.payload) == (7, Opcode.DATA, b"bye")


def test_connect_refused_is_fatal() -> None:
    probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()

    try:
        session, transport = create_connection("127.0.0.1", port, ClientConfig(connect_timeout_s=2.0))
    except OSError:
        # some stacks refuse synchronously
        return

    errors: List[ErrorEvent] = []
    session.on(ErrorEvent, errors.append)

    run_until(transport, lambda: session.closed, timeout_s=3.0)
    assert session.closed
    assert transport.is_closing()
    assert len(errors) == 1 and errors[0].fatal
    assert isinstance(errors[0].error, OSError)


def test_outbound_buffer_is_bounded() -> None:
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    try:
        t = TcpTransport("127.0.0.1", listener.getsockname()[1], max_buffer_bytes=16)
        t.connect()
        t.write(b"x" * 16)
        with pytest.raises(BufferError):
            t.write(b"y")
        t.close()
        with pytest.raises(ConnectionError):
            t.write(b"z")
    finally:
        listener.close()


def test_close_fails_pending_write_callbacks() -> None:
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    try:
        t = TcpTransport("127.0.0.1", listener.getsockname()[1])
        t.connect()
        results: List[Any] = []
        t.write(b"abc", results.append)
        t.close()
        assert len(results) == 1 and isinstance(results[0], ConnectionError)
        assert t.is_closing()
        t.close()
        assert len(results) == 1
    finally:
        listener.close()


def _ipv6_listener() -> socket.socket:
    if not socket.has_ipv6:
        pytest.skip("no IPv6 support")
    try:
        s = socket.socket(socket.AF_INET6, socket.SOCK_STREAM)
        s.bind(("::1", 0))
    except OSError:
        pytest.skip("IPv6 loopback unavailable")
    s.listen(1)
    return s


def test_connects_over_ipv6_loopback() -> None:
    listener = _ipv6_listener()
    try:
        made: List[bool] = []

        class _Receiver:
            def connection_made(self) -> None:
                made.append(True)

            def data_received(self, data: bytes) -> None:
                pass

            def connection_lost(self, error: Any = None) -> None:
                pass

        t = TcpTransport("::1", listener.getsockname()[1], receiver=_Receiver(), connect_timeout_s=5.0)
        t.connect()
        assert t.address is not None and t.address[0] == "::1"
        assert run_until(t, lambda: bool(made), timeout_s=5.0)
        assert t.connected
        t.close()
    finally:
        listener.close()


def test_unresolvable_host_raises() -> None:
    t = TcpTransport("name.invalid", 7010)
    with pytest.raises(OSError):
        t.connect()
