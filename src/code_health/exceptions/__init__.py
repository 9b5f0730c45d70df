"""Exception hierarchy for code-health."""

from .base import CodeHealthError
from .config import ConfigurationError, InvalidConfigError, InvalidPathError
from .serving import FileNotTrackedError, ServingError, SnapshotNotReadyError
from .tools import (
    ToolError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolOutputError,
    ToolTimeoutError,
)

__all__ = [
    "CodeHealthError",
    "ConfigurationError",
    "InvalidConfigError",
    "InvalidPathError",
    "ToolError",
    "ToolNotFoundError",
    "ToolTimeoutError",
    "ToolExecutionError",
    "ToolOutputError",
    "ServingError",
    "SnapshotNotReadyError",
    "FileNotTrackedError",
]
