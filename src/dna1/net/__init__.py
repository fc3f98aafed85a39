# src/dna1/net/__init__.py
"""
DNA1 — Network package

This package provides the client side of the DNA1 channel multiplexing
protocol:
  - mode: channel open mode expressions ("r", "rw", "w+e", ...)
  - codec: frame layout + encoding
  - reassembly: carry-over of partial frames between deliveries
  - decoder: streaming frame decoder
  - handshake: one-shot connection upgrade
  - events: notifications delivered to session listeners
  - session: per-connection protocol engine
  - transport: abstract byte-stream contract
  - transport_tcp / transport_memory: concrete transports
  - client: create_connection() wiring

Applications should depend on:
  - net.client (to connect)
  - net.session + net.events (to talk and listen)
"""

from __future__ import annotations

__all__ = [
    "mode",
    "codec",
    "reassembly",
    "decoder",
    "handshake",
    "events",
    "errors",
    "session",
    "transport",
    "transport_tcp",
    "transport_memory",
    "client",
]
