from __future__ import annotations

import threading

from .model import ReportSnapshot, SymbolRecord


class SnapshotStore:
    """Holds the currently published report snapshot."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot = ReportSnapshot.empty()

    def replace(self, snapshot: ReportSnapshot) -> None:
        with self._lock:
            self._snapshot = snapshot

    def clear(self) -> None:
        self.replace(ReportSnapshot.empty())

    def current(self) -> ReportSnapshot:
        with self._lock:
            return self._snapshot

    def get(self, name: str, address: int) -> SymbolRecord | None:
        return self.current().get(name, address)
