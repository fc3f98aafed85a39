# src/dna1/env.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv

_loaded_from: Optional[Path] = None
_attempted = False


def _resolve(dotenv_path: Optional[str]) -> Optional[Path]:
    explicit = dotenv_path or os.getenv("DNA1_DOTENV_PATH")
    if explicit:
        p = Path(explicit).expanduser()
        return p if p.is_file() else None
    # nearest .env walking up from the working directory
    found = find_dotenv(usecwd=True)
    return Path(found) if found else None


def load_dotenv_if_present(dotenv_path: Optional[str] = None) -> Optional[Path]:
    """
    Load DNA1_* settings from a .env file, once per process.

    Lookup: the dotenv_path argument, then DNA1_DOTENV_PATH, then the
    nearest .env above the current directory. Variables already set in the
    environment win over the file.

    Returns the file that was loaded, or None if nothing was loaded by this call.
    """
    global _loaded_from, _attempted
    if _attempted:
        return None
    _attempted = True

    path = _resolve(dotenv_path)
    if path is None:
        return None

    load_dotenv(dotenv_path=path, override=False)
    _loaded_from = path
    return path


def loaded_dotenv_path() -> Optional[Path]:
    return _loaded_from


def _reset_for_tests() -> None:
    global _loaded_from, _attempted
    _loaded_from = None
    _attempted = False
