from __future__ import annotations

import json
import socket
from pathlib import Path

import pytest

from dna1 import env
from dna1.__main__ import _event_json, _parse_args, main
from dna1.net.errors import OpenRejectedError
from dna1.net.events import ErrorEvent, MessageEvent


def test_parse_args_defaults() -> None:
    args = _parse_args(["127.0.0.1", "7010"])
    assert (args.host, args.port) == ("127.0.0.1", 7010)
    assert args.channel is None
    assert args.mode == "rw"


def test_event_json() -> None:
    assert _event_json(MessageEvent(channel=1, priority=2, payload=b"hi")) == {
        "event": "MessageEvent",
        "channel": 1,
        "priority": 2,
        "payload": "hi",
    }

    out = _event_json(ErrorEvent(error=OpenRejectedError(4, 3, "nope"), fatal=False))
    assert out["error"] == {"type": "OpenRejectedError", "code": "open_rejected", "text": "Open Error #3 nope"}
    assert out["fatal"] is False
    json.dumps(out)


def test_main_fails_when_nothing_listens(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("DNA1_DOTENV_PATH", str(tmp_path / "missing.env"))
    env._reset_for_tests()

    probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()

    assert main(["127.0.0.1", str(port), "--timeout", "2"]) == 1
    env._reset_for_tests()
