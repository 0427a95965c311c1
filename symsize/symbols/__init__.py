"""Symbol size extraction and aggregation engine."""

from .coordinator import ReloadCoordinator, ReloadState, merge_records
from .helpers import classify, parse_symbol_line
from .locate import resolve_location
from .model import (
    RawSymbolFields,
    ReloadRequest,
    ReportSnapshot,
    SourceLocation,
    StorageClass,
    SymbolRecord,
)
from .store import SnapshotStore
from .toolchain import DumpToolRun, find_tool, resolve_tool_path, run_dump_tool

__all__ = [
    "DumpToolRun",
    "RawSymbolFields",
    "ReloadCoordinator",
    "ReloadRequest",
    "ReloadState",
    "ReportSnapshot",
    "SnapshotStore",
    "SourceLocation",
    "StorageClass",
    "SymbolRecord",
    "classify",
    "find_tool",
    "merge_records",
    "parse_symbol_line",
    "resolve_location",
    "resolve_tool_path",
    "run_dump_tool",
]
