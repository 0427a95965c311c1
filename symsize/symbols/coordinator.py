"""Single-flight reload orchestration.

A ReloadCoordinator owns one worker thread. Triggers call ``reload()`` from
any thread; the newest request always wins and an in-flight reload is
cancelled rather than queued behind. Every cycle is tagged with a generation
number and only the newest generation may publish into the store.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from enum import StrEnum
import logging
import threading
from typing import Any

from symsize.config import RELOAD_SCHEMA
from symsize.const import (
    CONF_BINARY_PATH,
    CONF_DUMP_TOOL_PATH,
    CONF_RESOLVE_LOCATIONS,
    DEFAULT_LOCATION_TOOL,
)
from symsize.core import ErrorKind, SymsizeError
from symsize.helpers import file_mtime

from .helpers import parse_symbol_line
from .locate import resolve_location
from .model import ReloadRequest, ReportSnapshot, SourceLocation, SymbolRecord
from .store import SnapshotStore
from .toolchain import find_tool, run_dump_tool

_LOGGER = logging.getLogger(__name__)

SnapshotReadyCallback = Callable[[ReportSnapshot], None]
ReloadFailedCallback = Callable[[ErrorKind, str], None]
Dispatcher = Callable[[Callable[[], None]], Any]

WORKER_JOIN_TIMEOUT = 5.0


class ReloadState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    PUBLISHING = "publishing"
    CANCELLED = "cancelled"
    FAILED = "failed"


def merge_records(records: Iterable[SymbolRecord]) -> list[SymbolRecord]:
    """Collapse records sharing name and address into the first one seen.

    Sizes are not summed: the same name at the same address is one symbol
    listed twice. The same name at different addresses stays distinct.
    """
    merged: dict[tuple[str, int], SymbolRecord] = {}
    for record in records:
        merged.setdefault(record.key, record)
    return list(merged.values())


class _ReloadCycle:
    """Bookkeeping for one reload, guarded by the coordinator lock."""

    __slots__ = ("generation", "request", "run", "cancelled")

    def __init__(self, generation: int, request: ReloadRequest) -> None:
        self.generation = generation
        self.request = request
        self.run = None
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True
        if self.run is not None:
            self.run.cancel()


class ReloadCoordinator:
    """Runs reloads off the caller's thread and publishes snapshots."""

    def __init__(
        self,
        store: SnapshotStore | None = None,
        *,
        on_snapshot_ready: SnapshotReadyCallback | None = None,
        on_reload_failed: ReloadFailedCallback | None = None,
        dispatch: Dispatcher | None = None,
        invoker: Callable[..., Any] = run_dump_tool,
        locator: Callable[..., SourceLocation | None] = resolve_location,
    ) -> None:
        """Initialize the coordinator and start its worker thread.

        Args:
            store: Store receiving published snapshots (a new one if omitted)
            on_snapshot_ready: Called with each newly published snapshot
            on_reload_failed: Called with the error kind and a message when a
                reload fails
            dispatch: Hands notifications to the collaborator's thread, e.g.
                ``loop.call_soon_threadsafe``. Without it notifications run on
                the worker thread.
            invoker: Starts the dump tool, see ``run_dump_tool``
            locator: Resolves an address to a source location, see
                ``resolve_location``
        """
        self.store = store if store is not None else SnapshotStore()
        self.on_snapshot_ready = on_snapshot_ready
        self.on_reload_failed = on_reload_failed
        self._dispatch = dispatch
        self._invoker = invoker
        self._locator = locator

        self._lock = threading.Lock()
        self._wakeup = threading.Condition(self._lock)
        self._generation = 0
        self._pending: _ReloadCycle | None = None
        self._active: _ReloadCycle | None = None
        self._published_request: ReloadRequest | None = None
        self._state = ReloadState.IDLE
        self._closed = False

        self._worker = threading.Thread(
            target=self._worker_main, name="symsize-reload", daemon=True
        )
        self._worker.start()

    @property
    def state(self) -> ReloadState:
        with self._lock:
            return self._state

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def _set_state(self, state: ReloadState) -> None:
        # Caller holds self._lock
        if state != self._state:
            _LOGGER.debug("Reload state %s -> %s", self._state, state)
            self._state = state

    def reload(
        self,
        binary_path: str,
        dump_tool_path: str,
        resolve_locations: bool = False,
        **options: Any,
    ) -> int:
        """Trigger a reload; supersedes any reload still in flight.

        Returns:
            Generation number assigned to this request

        Raises:
            vol.Invalid: The arguments do not pass RELOAD_SCHEMA
            SymsizeError: The coordinator has been closed
        """
        config = RELOAD_SCHEMA(
            {
                CONF_BINARY_PATH: binary_path,
                CONF_DUMP_TOOL_PATH: dump_tool_path,
                CONF_RESOLVE_LOCATIONS: resolve_locations,
                **options,
            }
        )
        request = ReloadRequest.from_config(config)

        with self._lock:
            if self._closed:
                raise SymsizeError("Reload coordinator is closed")
            self._generation += 1
            self._pending = _ReloadCycle(self._generation, request)
            if self._active is not None:
                _LOGGER.debug(
                    "Cancelling reload %d for reload %d",
                    self._active.generation,
                    self._generation,
                )
                self._active.cancel()
            self._wakeup.notify_all()
            return self._generation

    def clear(self) -> None:
        """Publish an empty report and drop any pending or running reload."""
        with self._lock:
            self._generation += 1
            self._pending = None
            if self._active is not None:
                self._active.cancel()
            self._published_request = None
            self.store.clear()
            self._wakeup.notify_all()

    def current_snapshot(self) -> ReportSnapshot:
        return self.store.current()

    def resolve_location(self, symbol: SymbolRecord) -> SourceLocation | None:
        """Look up the source location of a symbol in the current snapshot.

        When the snapshot was loaded with ``resolve_locations`` enabled, a
        binary modified since the reload yields None instead of a possibly
        wrong location.
        """
        with self._lock:
            request = self._published_request
            snapshot = self.store.current()

        if request is None or snapshot.binary_path is None:
            return None

        if request.resolve_locations:
            mtime = file_mtime(snapshot.binary_path)
            if mtime != snapshot.binary_mtime:
                _LOGGER.warning(
                    "%s changed since symbols were loaded, reload to locate %s",
                    snapshot.binary_path,
                    symbol.name,
                )
                return None

        tool = request.location_tool_path or (
            find_tool(DEFAULT_LOCATION_TOOL, request.dump_tool_path)
            or DEFAULT_LOCATION_TOOL
        )
        return self._locator(snapshot.binary_path, symbol.address, tool)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no reload is pending or running.

        Returns:
            False if the timeout expired first
        """
        with self._lock:
            return self._wakeup.wait_for(
                lambda: self._pending is None and self._active is None, timeout
            )

    def close(self) -> None:
        """Stop the worker thread, cancelling any reload in flight."""
        with self._lock:
            self._closed = True
            self._pending = None
            if self._active is not None:
                self._active.cancel()
            self._wakeup.notify_all()
        if self._worker is not threading.current_thread():
            self._worker.join(WORKER_JOIN_TIMEOUT)

    def __enter__(self) -> ReloadCoordinator:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _worker_main(self) -> None:
        while True:
            with self._lock:
                while self._pending is None and not self._closed:
                    self._wakeup.wait()
                if self._closed:
                    self._wakeup.notify_all()
                    return
                cycle = self._pending
                self._pending = None
                self._active = cycle
                self._set_state(ReloadState.RUNNING)

            try:
                self._run_cycle(cycle)
            except Exception as err:  # pylint: disable=broad-except
                _LOGGER.exception(
                    "Unexpected error during reload %d", cycle.generation
                )
                self._fail(cycle, ErrorKind.TOOL_EXECUTION_FAILED, str(err))
            finally:
                with self._lock:
                    self._active = None
                    self._set_state(ReloadState.IDLE)
                    self._wakeup.notify_all()

    def _run_cycle(self, cycle: _ReloadCycle) -> None:
        request = cycle.request
        _LOGGER.info("Loading symbols from %s", request.binary_path)
        binary_mtime = file_mtime(request.binary_path)
        malformed: list[str] = []
        records: list[SymbolRecord] = []

        try:
            run = self._invoker(
                request.dump_tool_path, request.binary_path, request.dump_flags
            )
        except SymsizeError as err:
            self._fail(cycle, err.kind, str(err))
            return

        with run:
            with self._lock:
                cycle.run = run
                if cycle.cancelled:
                    run.cancel()
            try:
                for line in run:
                    if cycle.cancelled:
                        break
                    if (fields := parse_symbol_line(line, malformed)) is not None:
                        records.append(SymbolRecord.from_fields(fields))
            except SymsizeError as err:
                self._fail(cycle, err.kind, str(err))
                return

        snapshot = ReportSnapshot(
            records=tuple(merge_records(records)),
            binary_path=request.binary_path,
            binary_mtime=binary_mtime,
            generation=cycle.generation,
            malformed_lines=len(malformed),
        )

        with self._lock:
            if cycle.cancelled or cycle.generation != self._generation:
                self._set_state(ReloadState.CANCELLED)
                _LOGGER.debug(
                    "Reload %d superseded, dropping result", cycle.generation
                )
                return
            self._set_state(ReloadState.PUBLISHING)
            self.store.replace(snapshot)
            self._published_request = request

        if malformed:
            _LOGGER.warning(
                "Skipped %d malformed symbol line(s) from %s",
                len(malformed),
                request.dump_tool_path,
            )
        _LOGGER.info(
            "Loaded %d symbols (%d lines) from %s",
            len(snapshot),
            len(records),
            request.binary_path,
        )
        self._notify(self.on_snapshot_ready, snapshot)

    def _fail(self, cycle: _ReloadCycle, kind: ErrorKind, detail: str) -> None:
        with self._lock:
            if cycle.cancelled or cycle.generation != self._generation:
                self._set_state(ReloadState.CANCELLED)
                _LOGGER.debug(
                    "Reload %d superseded while failing: %s", cycle.generation, detail
                )
                return
            self._set_state(ReloadState.FAILED)
        _LOGGER.warning("Reload of %s failed: %s", cycle.request.binary_path, detail)
        self._notify(self.on_reload_failed, kind, detail)

    def _notify(self, callback: Callable[..., None] | None, *args: Any) -> None:
        if callback is None:
            return

        def deliver() -> None:
            try:
                callback(*args)
            except Exception:  # pylint: disable=broad-except
                _LOGGER.exception("Error in reload notification handler")

        if self._dispatch is not None:
            self._dispatch(deliver)
        else:
            deliver()
