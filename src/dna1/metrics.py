# src/dna1/metrics.py
"""
In-process client metrics.

Series are keyed by metric name plus optional string labels, e.g.

  inc_counter("dna1_frames_received_total", op="DATA")

format_prometheus() renders every series in exposition text so a host
application can serve it next to its own metrics.
"""

from __future__ import annotations

import threading
import time
from typing import Dict, List, Tuple


Labels = Tuple[Tuple[str, str], ...]
SeriesKey = Tuple[str, Labels]

_lock = threading.Lock()
_counters: Dict[SeriesKey, int] = {}
_gauges: Dict[SeriesKey, int] = {}
_started_ms = int(time.time() * 1000)


def _key(name: str, labels: Dict[str, object]) -> SeriesKey | None:
    n = str(name or "").strip()
    if not n:
        return None
    return n, tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def _series_name(key: SeriesKey) -> str:
    name, labels = key
    if not labels:
        return name
    inner = ",".join(f'{k}="{v}"' for k, v in labels)
    return f"{name}{{{inner}}}"


def inc_counter(name: str, value: int = 1, **labels: object) -> None:
    key = _key(name, labels)
    if key is None:
        return
    with _lock:
        _counters[key] = _counters.get(key, 0) + int(value)


def set_gauge(name: str, value: int, **labels: object) -> None:
    key = _key(name, labels)
    if key is None:
        return
    with _lock:
        _gauges[key] = int(value)


def get_counter(name: str, **labels: object) -> int:
    """Value of one series, or the sum over all label sets when no labels are given."""
    with _lock:
        if labels:
            key = _key(name, labels)
            return _counters.get(key, 0) if key is not None else 0
        return sum(v for (n, _l), v in _counters.items() if n == name)


def reset() -> None:
    """Drop all series (tests)."""
    with _lock:
        _counters.clear()
        _gauges.clear()


def snapshot() -> dict:
    now_ms = int(time.time() * 1000)
    with _lock:
        return {
            "ts_ms": now_ms,
            "uptime_ms": now_ms - _started_ms,
            "counters": {_series_name(k): v for k, v in _counters.items()},
            "gauges": {_series_name(k): v for k, v in _gauges.items()},
        }


def format_prometheus() -> str:
    snap = snapshot()
    lines: List[str] = [f"dna1_uptime_ms {snap['uptime_ms']}"]
    for series in sorted(snap["counters"]):
        lines.append(f"{series} {snap['counters'][series]}")
    for series in sorted(snap["gauges"]):
        lines.append(f"{series} {snap['gauges'][series]}")
    return "\n".join(lines) + "\n"
