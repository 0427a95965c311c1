from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    """Failure kinds surfaced to collaborators through on_reload_failed."""

    TOOL_NOT_FOUND = "tool_not_found"
    TARGET_MISSING = "target_missing"
    TOOL_EXECUTION_FAILED = "tool_execution_failed"


class SymsizeError(Exception):
    """General symsize exception occurred."""

    kind: ErrorKind | None = None


class ToolNotFound(SymsizeError):
    """The dump or location tool does not resolve to an executable."""

    kind = ErrorKind.TOOL_NOT_FOUND

    def __init__(self, tool_path: str) -> None:
        super().__init__(f"Tool could not be found or is not executable: {tool_path}")
        self.tool_path = tool_path


class TargetMissing(SymsizeError):
    """The binary to analyze does not exist."""

    kind = ErrorKind.TARGET_MISSING

    def __init__(self, binary_path: str) -> None:
        super().__init__(f"Could not find binary: {binary_path}")
        self.binary_path = binary_path


class ToolExecutionFailed(SymsizeError):
    """An external tool failed to launch or exited with a non-zero status."""

    kind = ErrorKind.TOOL_EXECUTION_FAILED

    def __init__(self, exit_code: int | None, stderr_excerpt: str = "") -> None:
        if exit_code is None:
            message = "Tool could not be run"
        else:
            message = f"Tool exited with status {exit_code}"
        if stderr_excerpt:
            message = f"{message}: {stderr_excerpt}"
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr_excerpt = stderr_excerpt
