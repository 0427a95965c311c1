"""Source location lookup for a single symbol address."""

from __future__ import annotations

import logging
import re
import subprocess

from symsize.const import (
    DEFAULT_LOCATION_TOOL,
    LOCATION_TOOL_TIMEOUT,
    STDERR_EXCERPT_LIMIT,
)
from symsize.core import ToolExecutionFailed
from symsize.helpers import excerpt

from .model import SourceLocation

_LOGGER = logging.getLogger(__name__)

# addr2line appends e.g. " (discriminator 3)" for inlined code paths
_DISCRIMINATOR_PATTERN = re.compile(r"\s+\(discriminator \d+\)\s*$")


def parse_location_output(output: str) -> SourceLocation | None:
    """Parse the first line of addr2line output.

    Args:
        output: Raw stdout of ``addr2line -e <binary> <address>``

    Returns:
        SourceLocation, or None if addr2line has no debug info for the address.
        Example: /src/main.c:42 -> SourceLocation("/src/main.c", 42)
    """
    lines = output.strip().splitlines()
    if not lines:
        return None

    translation = _DISCRIMINATOR_PATTERN.sub("", lines[0].strip())
    # Split on the last colon so Windows drive letters stay in the file part
    file, sep, line = translation.rpartition(":")
    if not sep or not file or file == "??":
        return None
    try:
        line_number = int(line)
    except ValueError:
        return None
    if line_number <= 0:
        return None
    return SourceLocation(file, line_number)


def resolve_location(
    binary_path: str,
    address: int,
    location_tool_path: str = DEFAULT_LOCATION_TOOL,
    timeout: int = LOCATION_TOOL_TIMEOUT,
) -> SourceLocation | None:
    """Map one symbol address to its source file and line.

    The binary is not checked for being newer than the address; callers
    compare modification times themselves.

    Raises:
        ToolExecutionFailed: addr2line could not be started, timed out, or
            exited with a non-zero status
    """
    command = [location_tool_path, "-e", str(binary_path), f"0x{address:x}"]
    _LOGGER.debug("Running %s", " ".join(command))
    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
            check=False,
            close_fds=False,
        )
    except subprocess.TimeoutExpired as err:
        raise ToolExecutionFailed(None, f"timed out after {timeout}s") from err
    except OSError as err:
        raise ToolExecutionFailed(None, str(err)) from err

    if result.returncode != 0:
        raise ToolExecutionFailed(
            result.returncode, excerpt(result.stderr, STDERR_EXCERPT_LIMIT)
        )

    location = parse_location_output(result.stdout)
    if location is None:
        _LOGGER.debug("No location for 0x%x in %s", address, binary_path)
    return location
