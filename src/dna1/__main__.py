# src/dna1/__main__.py
"""Connect to a DNA1 server, optionally open a channel and talk on it.

Usage:
  python -m dna1 HOST PORT
  python -m dna1 HOST PORT --channel 1 --mode rw --message hello --wait 2

Every event is printed to stdout as one JSON line.

Env overrides (see dna1.config):
  DNA1_HOSTNAME, DNA1_SURFACE_ERRORS, DNA1_CONNECT_TIMEOUT_S, DNA1_LOG_LEVEL
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import sys
import time
from typing import Any, Dict, List, Optional

from dna1.config import load_client_config
from dna1.net.client import create_connection, run_until
from dna1.net.errors import Dna1Error
from dna1.net.events import ErrorEvent, SessionEvent
from dna1.net.net_logging import configure_structured_logging
from dna1.net.session import OPEN_MAX_SUCCESS_CODE


def _event_json(event: SessionEvent) -> Dict[str, Any]:
    out: Dict[str, Any] = {"event": type(event).__name__}
    for f in dataclasses.fields(event):
        v = getattr(event, f.name)
        if isinstance(v, bytes):
            v = v.decode("utf-8", errors="replace")
        elif isinstance(v, BaseException):
            v = {"type": type(v).__name__, "code": getattr(v, "code", None), "text": str(v)}
        out[f.name] = v
    return out


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    ap = argparse.ArgumentParser(prog="dna1", description="DNA1 probe client")
    ap.add_argument("host")
    ap.add_argument("port", type=int)
    ap.add_argument("--hostname", default=None, help="host name sent in the handshake")
    ap.add_argument("--channel", type=int, default=None)
    ap.add_argument("--mode", default="rw")
    ap.add_argument("--token", default=None, help="payload for the OPEN request")
    ap.add_argument("--message", default=None, help="DATA payload sent once the channel is open")
    ap.add_argument("--signal", default=None, help="SIGNAL payload sent once the channel is open")
    ap.add_argument("--timeout", type=float, default=10.0)
    ap.add_argument("--wait", type=float, default=1.0, help="seconds to keep listening after sending")
    return ap.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    configure_structured_logging()
    args = _parse_args(argv)

    cfg = load_client_config()
    if args.hostname:
        cfg = dataclasses.replace(cfg, hostname=args.hostname)

    failed: List[BaseException] = []

    def _print(event: SessionEvent) -> None:
        if isinstance(event, ErrorEvent) and event.fatal:
            failed.append(event.error)
        sys.stdout.write(json.dumps(_event_json(event), sort_keys=True) + "\n")
        sys.stdout.flush()

    try:
        session, transport = create_connection(args.host, args.port, cfg)
    except (OSError, ValueError) as e:
        sys.stderr.write(f"dna1: connect failed: {e}\n")
        return 1

    session.add_listener(_print)

    if not run_until(transport, lambda: session.is_ready or session.closed, timeout_s=args.timeout):
        sys.stderr.write("dna1: handshake timed out\n")
        session.destroy()
        return 1
    if session.closed:
        return 1

    if args.channel is not None:
        opened: List[int] = []
        answered: List[int] = []

        def _opened(channel: int, code: Optional[int], payload: bytes, error: Optional[BaseException]) -> None:
            answered.append(channel)
            if error is None and code is not None and code <= OPEN_MAX_SUCCESS_CODE:
                opened.append(channel)
            sys.stdout.write(
                json.dumps(
                    {
                        "event": "OpenResponse",
                        "channel": channel,
                        "code": code,
                        "payload": payload.decode("utf-8", errors="replace"),
                        "error": str(error) if error is not None else None,
                    },
                    sort_keys=True,
                )
                + "\n"
            )

        try:
            session.request_open(args.channel, args.mode, args.token, _opened)
        except Dna1Error as e:
            sys.stderr.write(f"dna1: {e}\n")
            session.destroy()
            return 1

        if not run_until(transport, lambda: bool(answered) or session.closed, timeout_s=args.timeout):
            sys.stderr.write("dna1: open timed out\n")
            session.destroy()
            return 1

        if opened and not session.closed:
            if args.message is not None:
                session.send_data(args.channel, 0, args.message)
            if args.signal is not None:
                session.send_signal(args.channel, 0, args.signal)

    deadline = time.monotonic() + max(0.0, args.wait)
    run_until(transport, lambda: session.closed or time.monotonic() >= deadline)

    session.destroy()
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
