from __future__ import annotations

import os
from pathlib import Path


def get_bool_env(var, default=False):
    value = os.getenv(var, default)
    if isinstance(value, str):
        value = value.lower()
        if value in ["1", "true"]:
            return True
        if value in ["0", "false"]:
            return False
    return bool(value)


def get_str_env(var, default=None):
    value = os.getenv(var, default)
    if value is None:
        return None
    return str(value)


def file_mtime(path: str | Path) -> float | None:
    """Return the modification time of a file, or None if it is gone."""
    try:
        return Path(path).stat().st_mtime
    except OSError:
        return None


def excerpt(text: str, limit: int) -> str:
    """Trim tool output to its last ``limit`` characters.

    The tail is kept since tools print the fatal message last.
    """
    text = text.strip()
    if len(text) <= limit:
        return text
    return "..." + text[-limit:]
