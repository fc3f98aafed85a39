"""Channel open modes.

A mode expression is read / write / emit in that order, each spelled short or
long, with an optional "+" before the emit group: "r", "rw", "w+e",
"readwrite+emit". Matching is case-insensitive. The "+" is a visual separator
and adds no bits.
"""

from __future__ import annotations

import re
from typing import Optional

from dna1.net.errors import InvalidModeError

READ = 0x01
WRITE = 0x02
READWRITE = 0x03
EMIT = 0x04

_MODE_RE = re.compile(r"(r|read)?(w|write)?(?:\+)?(e|emit)?", re.IGNORECASE)


def parse_mode(expr: Optional[str]) -> int:
    """Return the mode bitmask for `expr`. Empty or None means no bits."""
    if expr is None or expr == "":
        return 0

    if not isinstance(expr, str):
        raise InvalidModeError(expr)

    m = _MODE_RE.fullmatch(expr)
    if m is None:
        raise InvalidModeError(expr)

    bits = 0
    if m.group(1):
        bits |= READ
    if m.group(2):
        bits |= WRITE
    if m.group(3):
        bits |= EMIT
    return bits


def format_mode(bits: int) -> str:
    out = ""
    if bits & READ:
        out += "r"
    if bits & WRITE:
        out += "w"
    if bits & EMIT:
        out += "+e" if out else "e"
    return out
