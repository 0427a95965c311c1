"""Helper functions for symbol size extraction."""

from __future__ import annotations

import logging
import re

from symsize.const import MAX_UINT64

from .model import RawSymbolFields, StorageClass

_LOGGER = logging.getLogger(__name__)

_HEX_PATTERN = re.compile(r"[0-9A-Fa-f]+")

# nm type letters; case only encodes local vs global linkage
TYPE_CODE_STORAGE = {
    "t": StorageClass.TEXT,
    "d": StorageClass.DATA,
    "b": StorageClass.BSS,
    "r": StorageClass.READ_ONLY,
}


def classify(type_code: str) -> StorageClass:
    """Map a dump tool type letter to its storage class.

    Args:
        type_code: Type letter from nm output (e.g., "T", "b", "W")

    Returns:
        Storage class, StorageClass.UNKNOWN for anything not in the table
    """
    return TYPE_CODE_STORAGE.get(type_code.lower(), StorageClass.UNKNOWN)


def _parse_hex(field: str) -> int:
    if not _HEX_PATTERN.fullmatch(field):
        raise ValueError(f"invalid hex field {field!r}")
    value = int(field, 16)
    if value > MAX_UINT64:
        raise ValueError(f"hex field {field!r} exceeds 64 bits")
    return value


def _is_size_field(token: str) -> bool:
    # nm pads sizes to the address width and no type letter is a digit
    return len(token) > 1 or token.isdigit()


def parse_symbol_line(
    line: str, malformed: list[str] | None = None
) -> RawSymbolFields | None:
    """Parse a single symbol line from nm output.

    Args:
        line: Line from ``nm --print-size`` output
        malformed: Optional list that collects lines having the right shape
            but an unparsable address or size field

    Returns:
        RawSymbolFields or None if the line is not a symbol line.
        Formats: ``address type name`` or ``address size type name``
        Example: 00000100 00000004 T main
    """
    parts = line.split(None, 3)
    if len(parts) < 3:
        return None

    if len(parts) == 4 and len(parts[2]) == 1 and _is_size_field(parts[1]):
        address_field, size_field, type_code, name = parts
    elif len(parts[1]) == 1 and not _is_size_field(parts[1]):
        address_field, type_code = parts[0], parts[1]
        size_field = None
        name = line.split(None, 2)[2]
    else:
        return None

    name = name.strip()
    if not name:
        return None

    try:
        address = _parse_hex(address_field)
        size = _parse_hex(size_field) if size_field is not None else 0
    except ValueError as err:
        _LOGGER.debug("Skipping malformed symbol line %r: %s", line, err)
        if malformed is not None:
            malformed.append(line)
        return None

    return RawSymbolFields(address, size, type_code, name)
