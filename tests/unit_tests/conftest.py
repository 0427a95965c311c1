"""
symsize Unittests
~~~~~~~~~~~~~~~~~

Configuration file for unit tests.

If adding unit tests ensure that they are fast. Tests that start real
processes use tiny Python scripts standing in for nm and addr2line.

"""

from collections.abc import Callable, Generator, Iterator
from pathlib import Path
import stat
import sys
import threading
from unittest.mock import Mock, patch

import pytest

here = Path(__file__).parent

# Configure location of package root
package_root = here.parent.parent
sys.path.insert(0, package_root.as_posix())

from symsize.core import SymsizeError  # noqa: E402


@pytest.fixture
def binary_path(tmp_path: Path) -> Path:
    """A stand-in for a built firmware image."""
    path = tmp_path / "firmware.elf"
    path.write_bytes(b"\x7fELF" + b"\x00" * 60)
    return path


@pytest.fixture
def make_tool(tmp_path: Path) -> Callable[..., Path]:
    """Create an executable script that behaves like an external tool.

    The script prints ``stdout`` and ``stderr``, optionally sleeps, and exits
    with ``exit_code``.
    """

    def _make_tool(
        name: str = "nm",
        stdout: str = "",
        stderr: str = "",
        exit_code: int = 0,
        sleep: float = 0.0,
    ) -> Path:
        script = tmp_path / name
        script.write_text(
            f"#!{sys.executable}\n"
            "import sys, time\n"
            f"sys.stdout.write({stdout!r})\n"
            "sys.stdout.flush()\n"
            f"sys.stderr.write({stderr!r})\n"
            f"time.sleep({sleep!r})\n"
            f"sys.exit({exit_code!r})\n",
            encoding="utf-8",
        )
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP)
        return script

    return _make_tool


@pytest.fixture
def mock_subprocess_run() -> Generator[Mock, None, None]:
    """Mock subprocess.run for testing."""
    with patch("subprocess.run") as mock:
        yield mock


class FakeRun:
    """In-memory stand-in for DumpToolRun used by coordinator tests."""

    def __init__(
        self,
        lines: list[str],
        error: SymsizeError | None = None,
        gate: threading.Event | None = None,
        honor_cancel: bool = True,
    ) -> None:
        self.lines = lines
        self.error = error
        self.gate = gate
        self.honor_cancel = honor_cancel
        self.started = threading.Event()
        self.cancel_called = threading.Event()
        self.closed = False

    def __iter__(self) -> Iterator[str]:
        self.started.set()
        if self.gate is not None:
            while not self.gate.wait(0.01):
                if self.honor_cancel and self.cancel_called.is_set():
                    return
        for line in self.lines:
            if self.honor_cancel and self.cancel_called.is_set():
                return
            yield line
        if self.error is not None:
            raise self.error

    def cancel(self) -> None:
        self.cancel_called.set()

    def __enter__(self) -> "FakeRun":
        return self

    def __exit__(self, *exc_info) -> None:
        self.closed = True


class FakeInvoker:
    """Hands out queued FakeRun objects and records the calls made."""

    def __init__(self, *runs: FakeRun | SymsizeError) -> None:
        self.runs = list(runs)
        self.calls: list[tuple[str, str, tuple[str, ...]]] = []

    def __call__(self, dump_tool_path, binary_path, flags=()):
        self.calls.append((dump_tool_path, binary_path, tuple(flags)))
        run = self.runs.pop(0)
        if isinstance(run, SymsizeError):
            raise run
        return run


@pytest.fixture
def fake_run() -> type[FakeRun]:
    return FakeRun


@pytest.fixture
def fake_invoker() -> type[FakeInvoker]:
    return FakeInvoker
