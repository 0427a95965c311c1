"""Toolchain utilities for symbol size extraction."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
import logging
import os
from pathlib import Path
import shutil
import subprocess
import threading

from symsize.const import (
    DEFAULT_DUMP_FLAGS,
    STDERR_EXCERPT_LIMIT,
    TOOL_TERMINATE_TIMEOUT,
)
from symsize.core import TargetMissing, ToolExecutionFailed, ToolNotFound
from symsize.helpers import excerpt

_LOGGER = logging.getLogger(__name__)

# Platform-specific toolchain prefixes
TOOLCHAIN_PREFIXES = [
    "avr-",  # AVR 8-bit
    "arm-none-eabi-",  # Generic ARM (SAM, STM32, RP2040, etc.)
    "xtensa-esp32-elf-",  # ESP32
    "xtensa-lx106-elf-",  # ESP8266
    "riscv32-esp-elf-",  # ESP32-C3/C6
    "",  # System default (no prefix)
]

# Names a dump tool may carry, used to derive sibling tool names
_DUMP_TOOL_NAMES = ("objdump", "nm")


def _find_in_platformio_packages(tool_name: str) -> str | None:
    """Search for a tool in PlatformIO package directories.

    Args:
        tool_name: Name of the tool (e.g., "nm", "addr2line")

    Returns:
        Full path to the tool or None if not found
    """
    platformio_home = Path(os.path.expanduser("~/.platformio/packages"))
    if not platformio_home.exists():
        return None

    # Order matters - more specific patterns first
    search_patterns = [
        f"toolchain-*/*/bin/*-{tool_name}",
        f"toolchain-*/bin/*-{tool_name}",
    ]

    for pattern in search_patterns:
        matches = sorted(platformio_home.glob(pattern))
        if matches:
            tool_path = str(matches[0])
            _LOGGER.debug("Found %s in PlatformIO packages: %s", tool_name, tool_path)
            return tool_path

    return None


def _sibling_tool(tool_name: str, base_path: str) -> str | None:
    """Swap the tool name in ``base_path``, keeping any cross prefix.

    ``/opt/avr/bin/avr-nm`` becomes ``/opt/avr/bin/avr-addr2line``.
    """
    base_file = Path(base_path)
    stem = base_file.stem
    for dump_name in _DUMP_TOOL_NAMES:
        if stem.endswith(dump_name):
            new_name = stem[: -len(dump_name)] + tool_name + base_file.suffix
            return str(base_file.with_name(new_name))
    return None


def find_tool(
    tool_name: str,
    base_tool_path: str | None = None,
) -> str | None:
    """Find a toolchain tool by name.

    First tries to derive the tool path from ``base_tool_path`` (if provided),
    then searches PlatformIO package directories, and finally falls back to
    searching for platform-specific tools in PATH.

    Args:
        tool_name: Name of the tool (e.g., "nm", "addr2line")
        base_tool_path: Path to nm or objdump to derive other tool paths from

    Returns:
        Path to the tool or None if not found
    """
    if base_tool_path:
        potential_path = _sibling_tool(tool_name, base_tool_path)
        if potential_path and shutil.which(potential_path):
            _LOGGER.debug("Found %s at: %s", tool_name, potential_path)
            return potential_path

    if found := _find_in_platformio_packages(tool_name):
        return found

    for prefix in TOOLCHAIN_PREFIXES:
        cmd = f"{prefix}{tool_name}"
        if found := shutil.which(cmd):
            _LOGGER.debug("Found %s: %s", tool_name, found)
            return found

    _LOGGER.warning("Could not find %s tool", tool_name)
    return None


def resolve_tool_path(
    tool_name: str,
    configured_path: str | None,
    base_tool_path: str | None = None,
) -> str | None:
    """Resolve a tool path, falling back to find_tool if it doesn't exist.

    Args:
        tool_name: Name of the tool (e.g., "nm", "addr2line")
        configured_path: Path from the options (may be None or stale)
        base_tool_path: Path to nm or objdump to derive other tool paths from

    Returns:
        Resolved path to the tool, or the configured path if it is usable
    """
    if configured_path and shutil.which(configured_path):
        return configured_path
    found = find_tool(tool_name, base_tool_path)
    if found and configured_path:
        _LOGGER.debug(
            "Configured %s path %s not found, using %s",
            tool_name,
            configured_path,
            found,
        )
    return found or configured_path


class DumpToolRun:
    """One running invocation of the symbol dump tool.

    Iterating yields stdout lines as the tool produces them. A run can be
    iterated only once; start a new one to retry.
    """

    def __init__(self, proc: subprocess.Popen, command: Sequence[str]) -> None:
        self._proc = proc
        self._command = list(command)
        self._cancelled = threading.Event()
        self._consumed = False
        self._stderr: list[str] = []
        self._stderr_thread = threading.Thread(
            target=self._stderr_thread_main, name="symsize-stderr", daemon=True
        )
        self._stderr_thread.start()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode

    def _stderr_thread_main(self) -> None:
        for line in self._proc.stderr:
            self._stderr.append(line)

    def __iter__(self) -> Iterator[str]:
        if self._consumed:
            raise RuntimeError("DumpToolRun output can only be read once")
        self._consumed = True
        return self._read_lines()

    def _read_lines(self) -> Iterator[str]:
        for line in self._proc.stdout:
            if self.cancelled:
                break
            yield line.rstrip("\r\n")

        if self.cancelled:
            self._terminate()
            return

        returncode = self._proc.wait()
        self._stderr_thread.join()
        if returncode != 0:
            stderr = excerpt("".join(self._stderr), STDERR_EXCERPT_LIMIT)
            _LOGGER.debug(
                "Command %s exited with %s", " ".join(self._command), returncode
            )
            raise ToolExecutionFailed(returncode, stderr)

    def cancel(self) -> None:
        """Stop the run; iteration ends at the next line boundary.

        Safe to call from any thread. Only signals the process, reaping it
        is left to the reading thread.
        """
        if self._cancelled.is_set():
            return
        self._cancelled.set()
        if self._proc.poll() is None:
            self._proc.terminate()

    def _terminate(self) -> None:
        if self._proc.poll() is not None:
            return
        _LOGGER.debug("Terminating %s", self._command[0])
        self._proc.terminate()
        try:
            self._proc.wait(TOOL_TERMINATE_TIMEOUT)
        except subprocess.TimeoutExpired:
            self._proc.kill()
            self._proc.wait()

    def close(self) -> None:
        self._terminate()
        self._stderr_thread.join(TOOL_TERMINATE_TIMEOUT)
        self._proc.stdout.close()
        if not self._stderr_thread.is_alive():
            self._proc.stderr.close()

    def __enter__(self) -> DumpToolRun:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def run_dump_tool(
    dump_tool_path: str,
    binary_path: str,
    flags: Sequence[str] = DEFAULT_DUMP_FLAGS,
) -> DumpToolRun:
    """Start the symbol dump tool against a binary.

    Args:
        dump_tool_path: Path to nm (or a name found in PATH)
        binary_path: Path to the built binary
        flags: Flags passed to the tool before the binary path

    Returns:
        DumpToolRun streaming the tool's output

    Raises:
        TargetMissing: The binary does not exist
        ToolNotFound: The tool does not resolve to an executable
    """
    if not Path(binary_path).is_file():
        raise TargetMissing(str(binary_path))
    if not dump_tool_path or shutil.which(dump_tool_path) is None:
        raise ToolNotFound(str(dump_tool_path))

    command = [dump_tool_path, *flags, str(binary_path)]
    _LOGGER.debug("Running %s", " ".join(command))
    try:
        # pylint: disable=consider-using-with
        proc = subprocess.Popen(
            command,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            stdin=subprocess.DEVNULL,
            text=True,
            errors="replace",
            close_fds=False,
        )
    except (FileNotFoundError, PermissionError) as err:
        raise ToolNotFound(str(dump_tool_path)) from err
    except OSError as err:
        raise ToolExecutionFailed(None, str(err)) from err

    return DumpToolRun(proc, command)
