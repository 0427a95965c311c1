"""Presentation helpers for the command line front end.

These play the part of the tool window around the engine: filtering,
grouped ordering and the plain text export. The engine itself never
filters or sorts a snapshot.
"""

from __future__ import annotations

from collections.abc import Iterable
import logging
import re

from .model import ReportSnapshot, StorageClass, SymbolRecord

_LOGGER = logging.getLogger(__name__)

TEXT_STORAGE = frozenset([StorageClass.TEXT])
DATA_STORAGE = frozenset([StorageClass.DATA, StorageClass.BSS, StorageClass.READ_ONLY])

# Group order used when listing symbols
STORAGE_ORDER = (
    StorageClass.TEXT,
    StorageClass.READ_ONLY,
    StorageClass.DATA,
    StorageClass.BSS,
    StorageClass.UNKNOWN,
)

COL_STORAGE: int = 10
COL_SIZE: int = 12


def _name_matcher(pattern: str, use_regex: bool):
    if not pattern:
        return lambda name: True
    if not use_regex:
        return lambda name: pattern in name
    try:
        regex = re.compile(pattern)
    except re.error as err:
        _LOGGER.warning("Invalid filter expression %r: %s", pattern, err)
        return lambda name: False
    return lambda name: regex.search(name) is not None


def filter_symbols(
    records: Iterable[SymbolRecord],
    pattern: str = "",
    use_regex: bool = False,
    show_text: bool = True,
    show_data: bool = True,
) -> list[SymbolRecord]:
    """Select the records a user asked to see.

    Args:
        records: Records to filter, usually a ReportSnapshot
        pattern: Substring (or regular expression) the name must contain
        use_regex: Treat pattern as a regular expression; an invalid
            expression matches nothing
        show_text: Include code symbols
        show_data: Include data, bss and read-only symbols

    Unknown storage is only listed when both text and data are shown.
    """
    matches = _name_matcher(pattern, use_regex)
    selected = []
    for record in records:
        if record.storage in TEXT_STORAGE:
            visible = show_text
        elif record.storage in DATA_STORAGE:
            visible = show_data
        else:
            visible = show_text and show_data
        if visible and matches(record.name):
            selected.append(record)
    return selected


def sort_for_display(records: Iterable[SymbolRecord]) -> list[SymbolRecord]:
    """Group by storage class, largest symbols first within a group."""
    order = {storage: i for i, storage in enumerate(STORAGE_ORDER)}
    return sorted(
        records,
        key=lambda record: (order[record.storage], -record.size, record.name),
    )


def format_csv(records: Iterable[SymbolRecord]) -> str:
    """Format records as ``size, storage, name`` lines."""
    return "".join(
        f"{record.size}, {record.storage}, {record.name}\n" for record in records
    )


def format_totals(snapshot: ReportSnapshot) -> str:
    """Format per storage class totals of a snapshot."""
    totals = snapshot.totals()
    separator = "-+-".join("-" * width for width in (COL_STORAGE, COL_SIZE))
    lines = [
        f"{'Storage':<{COL_STORAGE}} | {'Size':>{COL_SIZE}}",
        separator,
    ]
    for storage in STORAGE_ORDER:
        if storage in totals:
            lines.append(
                f"{storage:<{COL_STORAGE}} | {totals[storage]:>{COL_SIZE - 2},} B"
            )
    lines.append(separator)
    lines.append(
        f"{'TOTAL':<{COL_STORAGE}} | {snapshot.total_size:>{COL_SIZE - 2},} B"
    )
    return "\n".join(lines)
