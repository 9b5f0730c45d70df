"""Serving-boundary conditions surfaced to API callers."""

from typing import Optional, Sequence

from .base import CodeHealthError


class ServingError(CodeHealthError):
    """Base class for snapshot query failures."""

    pass


class SnapshotNotReadyError(ServingError):
    """No analysis cycle has completed yet; the caller should retry later."""

    def __init__(self) -> None:
        super().__init__("Analysis not ready yet")


class FileNotTrackedError(ServingError):
    """The requested file does not resolve to any tracked file."""

    def __init__(self, reference: str, available: Optional[Sequence[str]] = None):
        super().__init__(
            "File not found in analysis",
            details={"searchedFor": reference},
        )
        self.reference = reference
        self.available = list(available or [])
