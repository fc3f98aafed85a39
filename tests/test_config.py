from __future__ import annotations

from pathlib import Path

import pytest

from dna1 import env
from dna1.config import DEFAULT_CONNECT_TIMEOUT_S, DEFAULT_MAX_BUFFER_BYTES, ClientConfig, load_client_config

_VARS = (
    "DNA1_HOSTNAME",
    "DNA1_SURFACE_ERRORS",
    "DNA1_CONNECT_TIMEOUT_S",
    "DNA1_MAX_BUFFER_BYTES",
    "DNA1_TCP_NODELAY",
    "DNA1_TCP_KEEPALIVE",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    for name in _VARS:
        # setenv first so values loaded from .env are undone too
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.setenv("DNA1_DOTENV_PATH", str(tmp_path / "missing.env"))
    env._reset_for_tests()
    yield
    env._reset_for_tests()


def test_defaults() -> None:
    cfg = load_client_config()
    assert cfg == ClientConfig()
    assert cfg.hostname is None
    assert cfg.surface_errors is True
    assert cfg.connect_timeout_s == DEFAULT_CONNECT_TIMEOUT_S
    assert cfg.max_buffer_bytes == DEFAULT_MAX_BUFFER_BYTES


def test_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DNA1_HOSTNAME", " example.com ")
    monkeypatch.setenv("DNA1_SURFACE_ERRORS", "off")
    monkeypatch.setenv("DNA1_CONNECT_TIMEOUT_S", "2.5")
    monkeypatch.setenv("DNA1_MAX_BUFFER_BYTES", "4096")
    monkeypatch.setenv("DNA1_TCP_NODELAY", "0")
    monkeypatch.setenv("DNA1_TCP_KEEPALIVE", "no")

    cfg = load_client_config()
    assert cfg.hostname == "example.com"
    assert cfg.surface_errors is False
    assert cfg.connect_timeout_s == 2.5
    assert cfg.max_buffer_bytes == 4096
    assert cfg.nodelay is False
    assert cfg.keepalive is False


def test_bad_values_fall_back(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DNA1_SURFACE_ERRORS", "maybe")
    monkeypatch.setenv("DNA1_CONNECT_TIMEOUT_S", "soon")
    monkeypatch.setenv("DNA1_MAX_BUFFER_BYTES", "12")

    cfg = load_client_config()
    assert cfg.surface_errors is True
    assert cfg.connect_timeout_s == DEFAULT_CONNECT_TIMEOUT_S
    # clamped to the floor
    assert cfg.max_buffer_bytes == 1024


def test_dotenv_file_is_loaded_without_override(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    dotenv = tmp_path / ".env"
    dotenv.write_text("DNA1_HOSTNAME=from-file.example\nDNA1_SURFACE_ERRORS=false\n", encoding="utf-8")
    monkeypatch.setenv("DNA1_DOTENV_PATH", str(dotenv))
    monkeypatch.setenv("DNA1_SURFACE_ERRORS", "true")

    cfg = load_client_config()
    assert cfg.hostname == "from-file.example"
    assert cfg.surface_errors is True
    assert env.loaded_dotenv_path() == dotenv

    # loaded once per process
    assert env.load_dotenv_if_present(str(dotenv)) is None
