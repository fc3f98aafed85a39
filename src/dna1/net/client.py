"""
DNA1 — Client wiring

create_connection() puts the pieces together the usual way:

  config = load_client_config()
  session, transport = create_connection("example.com", 7010, config, on_handshake=ready)
  run_until(transport, lambda: session.is_ready or session.closed, timeout_s=5)
"""

from __future__ import annotations

import time
from typing import Callable, Optional, Tuple

from dna1.config import ClientConfig
from dna1.net.events import HandshakeCompleteEvent
from dna1.net.session import Session
from dna1.net.transport_tcp import TcpTransport


DEFAULT_POLL_INTERVAL_S = 0.05


def handshake_hostname(host: Optional[str], config: ClientConfig) -> str:
    """Host name announced in the handshake: config override, then connect host."""
    return config.hostname or (str(host) if host else "") or "localhost"


def create_connection(
    host: str,
    port: int,
    config: Optional[ClientConfig] = None,
    on_handshake: Optional[Callable[[HandshakeCompleteEvent], None]] = None,
) -> Tuple[Session, TcpTransport]:
    cfg = config or ClientConfig()

    transport = TcpTransport(
        host,
        port,
        connect_timeout_s=cfg.connect_timeout_s,
        max_buffer_bytes=cfg.max_buffer_bytes,
        nodelay=cfg.nodelay,
        keepalive=cfg.keepalive,
    )
    session = Session(
        transport,
        hostname=handshake_hostname(host, cfg),
        surface_errors=cfg.surface_errors,
    )
    transport.attach(session)

    if on_handshake is not None:
        session.on(HandshakeCompleteEvent, on_handshake)

    transport.connect()
    return session, transport


def run_until(
    transport: TcpTransport,
    predicate: Callable[[], bool],
    *,
    timeout_s: Optional[float] = None,
    poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
) -> bool:
    """Pump the transport until predicate() holds.

    Returns False on timeout or when the transport closed first.
    """
    deadline = time.monotonic() + timeout_s if timeout_s is not None else None
    while not predicate():
        if transport.is_closing():
            return predicate()
        if deadline is not None and time.monotonic() >= deadline:
            return False
        transport.poll(timeout=poll_interval_s)
    return True
