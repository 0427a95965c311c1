"""Record types shared by the symbol size engine."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import StrEnum
from typing import NamedTuple

from symsize.const import DEFAULT_DUMP_FLAGS


class StorageClass(StrEnum):
    """Memory region a symbol occupies."""

    TEXT = "Text"
    DATA = "Data"
    BSS = "Bss"
    READ_ONLY = "ReadOnly"
    UNKNOWN = "Unknown"


class RawSymbolFields(NamedTuple):
    """Fields of one dump tool line, before classification."""

    address: int
    size: int
    type_code: str
    name: str


class SourceLocation(NamedTuple):
    file: str
    line: int

    def __str__(self) -> str:
        return f"{self.file}:{self.line}"


@dataclass(frozen=True, slots=True)
class SymbolRecord:
    """One row of the symbol size report."""

    name: str
    address: int
    size: int
    type_code: str
    storage: StorageClass

    @classmethod
    def from_fields(cls, fields: RawSymbolFields) -> SymbolRecord:
        """Build a record, deriving storage from the type code."""
        # helpers imports this module
        from .helpers import classify

        return cls(
            name=fields.name,
            address=fields.address,
            size=fields.size,
            type_code=fields.type_code,
            storage=classify(fields.type_code),
        )

    @property
    def key(self) -> tuple[str, int]:
        return (self.name, self.address)


@dataclass(frozen=True)
class ReportSnapshot:
    """Immutable result of one successful reload."""

    records: tuple[SymbolRecord, ...] = ()
    binary_path: str | None = None
    binary_mtime: float | None = None
    generation: int = 0
    malformed_lines: int = 0
    _index: dict[tuple[str, int], SymbolRecord] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "records", tuple(self.records))
        index: dict[tuple[str, int], SymbolRecord] = {}
        for record in self.records:
            index.setdefault(record.key, record)
        object.__setattr__(self, "_index", index)

    @classmethod
    def empty(cls) -> ReportSnapshot:
        return cls()

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[SymbolRecord]:
        return iter(self.records)

    def __getitem__(self, index: int) -> SymbolRecord:
        return self.records[index]

    def __bool__(self) -> bool:
        return bool(self.records)

    def get(self, name: str, address: int) -> SymbolRecord | None:
        """Look up the record with this exact name and address."""
        return self._index.get((name, address))

    def find(self, name: str) -> list[SymbolRecord]:
        """Return every record carrying this name, in report order."""
        return [record for record in self.records if record.name == name]

    def totals(self) -> dict[StorageClass, int]:
        """Sum of symbol sizes per storage class."""
        totals: dict[StorageClass, int] = defaultdict(int)
        for record in self.records:
            totals[record.storage] += record.size
        return dict(totals)

    @property
    def total_size(self) -> int:
        return sum(record.size for record in self.records)

    def content(self) -> set[tuple[str, int, int, StorageClass]]:
        """Order independent view used to compare two snapshots."""
        return {
            (record.name, record.address, record.size, record.storage)
            for record in self.records
        }


@dataclass(frozen=True)
class ReloadRequest:
    """Inputs of one reload cycle."""

    binary_path: str
    dump_tool_path: str
    resolve_locations: bool = False
    dump_flags: tuple[str, ...] = DEFAULT_DUMP_FLAGS
    location_tool_path: str | None = None

    @classmethod
    def from_config(cls, config: dict) -> ReloadRequest:
        """Build a request from a dict validated by RELOAD_SCHEMA."""
        return cls(
            binary_path=config["binary_path"],
            dump_tool_path=config["dump_tool_path"],
            resolve_locations=config.get("resolve_locations", False),
            dump_flags=tuple(config.get("dump_flags", DEFAULT_DUMP_FLAGS)),
            location_tool_path=config.get("location_tool_path"),
        )
