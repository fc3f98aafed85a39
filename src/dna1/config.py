# src/dna1/config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dna1.env import load_dotenv_if_present


DEFAULT_CONNECT_TIMEOUT_S = 10.0
DEFAULT_MAX_BUFFER_BYTES = 8_000_000


def _env_str(name: str, default: str = "") -> str:
    v = os.environ.get(name)
    return str(default if v is None else v).strip()


def _env_bool(name: str, default: bool) -> bool:
    raw = _env_str(name).lower()
    if not raw:
        return bool(default)
    if raw in {"1", "true", "yes", "y", "on"}:
        return True
    if raw in {"0", "false", "no", "n", "off"}:
        return False
    return bool(default)


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except ValueError:
        return int(default)


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, str(default)))
    except ValueError:
        return float(default)


@dataclass(frozen=True, slots=True)
class ClientConfig:
    """Per-connection client options.

    hostname:       host name sent in the handshake (defaults to the connect host)
    surface_errors: report server-side open/signal errors as error events;
                    when off those frames are silently dropped
    """

    hostname: Optional[str] = None
    surface_errors: bool = True
    connect_timeout_s: float = DEFAULT_CONNECT_TIMEOUT_S
    max_buffer_bytes: int = DEFAULT_MAX_BUFFER_BYTES
    nodelay: bool = True
    keepalive: bool = True


def load_client_config() -> ClientConfig:
    # Load .env first so DNA1_* vars exist before anything reads them.
    load_dotenv_if_present()

    hostname = _env_str("DNA1_HOSTNAME") or None
    return ClientConfig(
        hostname=hostname,
        surface_errors=_env_bool("DNA1_SURFACE_ERRORS", True),
        connect_timeout_s=max(0.0, _env_float("DNA1_CONNECT_TIMEOUT_S", DEFAULT_CONNECT_TIMEOUT_S)),
        max_buffer_bytes=max(1024, _env_int("DNA1_MAX_BUFFER_BYTES", DEFAULT_MAX_BUFFER_BYTES)),
        nodelay=_env_bool("DNA1_TCP_NODELAY", True),
        keepalive=_env_bool("DNA1_TCP_KEEPALIVE", True),
    )
