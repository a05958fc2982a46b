"""Small helpers shared across modules."""

from __future__ import annotations

import re

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def sanitize_for_log(value: object) -> str:
    """Strip control characters (newlines included) from client-supplied values.

    Prevents forged log lines when ids or headers are interpolated.
    """
    if value is None:
        return ""
    return _CONTROL_CHARS.sub("", str(value))
