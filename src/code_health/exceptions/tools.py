"""Tool adapter exceptions.

These never cross the adapter boundary: ``ToolAdapter.run`` catches every
``ToolError`` and turns it into a failed report.
"""

from typing import Optional

from .base import CodeHealthError


class ToolError(CodeHealthError):
    """Base class for failures of an external analysis tool."""

    def __init__(self, tool: str, message: str, details: Optional[dict] = None):
        merged = {"tool": tool}
        merged.update(details or {})
        super().__init__(message, details=merged)
        self.tool = tool


class ToolNotFoundError(ToolError):
    """Raised when the tool executable cannot be located."""

    def __init__(self, tool: str, executable: str):
        super().__init__(
            tool,
            f"Executable not found: {executable}",
            details={"executable": executable},
        )
        self.executable = executable


class ToolTimeoutError(ToolError):
    """Raised when the tool exceeds its wall-clock budget."""

    def __init__(self, tool: str, timeout: float):
        super().__init__(
            tool,
            f"{tool} exceeded {timeout:g}s timeout",
            details={"timeout": f"{timeout:g}"},
        )
        self.timeout = timeout


class ToolExecutionError(ToolError):
    """Raised when the tool exits abnormally without usable output."""

    def __init__(self, tool: str, returncode: int, stderr: str = ""):
        super().__init__(
            tool,
            f"{tool} exited with status {returncode}",
            details={"returncode": str(returncode), "stderr": stderr.strip()[:500]},
        )
        self.returncode = returncode
        self.stderr = stderr


class ToolOutputError(ToolError):
    """Raised when the tool output does not match the expected schema."""

    def __init__(self, tool: str, reason: str):
        super().__init__(tool, f"Malformed {tool} output: {reason}", details={"reason": reason})
        self.reason = reason
