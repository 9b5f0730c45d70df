"""Tool adapter base class and subprocess helper."""

from __future__ import annotations

import re
import shutil
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from ..config import ThresholdConfig
from ..exceptions import (
    ToolError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolTimeoutError,
)
from ..ignore import IgnoreRules
from ..logging_config import get_logger
from ..reports import Payload, ToolKind, ToolReport, utc_now_iso

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 300.0


@dataclass(frozen=True)
class AdapterContext:
    """Everything an adapter needs for one run."""

    root: Path
    ignore: IgnoreRules
    reports_dir: Path
    include: tuple[str, ...] = ()
    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)
    timeout: float = DEFAULT_TIMEOUT_SECONDS

    def relative(self, path: str) -> str:
        """POSIX path of *path* relative to the root (unchanged if outside)."""
        p = Path(path)
        if p.is_absolute():
            try:
                p = p.relative_to(self.root)
            except ValueError:
                return p.as_posix()
        return p.as_posix()

    def scratch_path(self, kind: ToolKind, suffix: str) -> Path:
        """A scratch file owned by *kind* inside the reports directory."""
        return self.reports_dir / f"{kind.value}-{suffix}"


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    stdout: str
    stderr: str


def run_tool(
    tool: str,
    cmd: Sequence[str],
    cwd: Path,
    timeout: float,
    ok_returncodes: Optional[Sequence[int]] = (0,),
) -> CommandResult:
    """Run an external tool, killing it when *timeout* elapses.

    ``ok_returncodes=None`` accepts any exit status; tools that signal
    findings through their exit code leave the decision to the caller.

    Raises:
        ToolNotFoundError: The executable does not exist
        ToolTimeoutError: The tool ran past *timeout*
        ToolExecutionError: The exit status is not acceptable
    """
    logger.debug("Running %s: %s", tool, " ".join(cmd))
    try:
        # subprocess.run kills the child before re-raising TimeoutExpired.
        proc = subprocess.run(
            list(cmd),
            cwd=str(cwd),
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError:
        raise ToolNotFoundError(tool, cmd[0])
    except subprocess.TimeoutExpired:
        raise ToolTimeoutError(tool, timeout)

    if ok_returncodes is not None and proc.returncode not in ok_returncodes:
        raise ToolExecutionError(tool, proc.returncode, proc.stderr or "")
    return CommandResult(proc.returncode, proc.stdout or "", proc.stderr or "")


_VERSION_RE = re.compile(r"(\d+\.\d+(?:\.\d+)?)")


def probe_version(tool: str, cmd: Sequence[str], cwd: Path) -> str:
    """Version string printed by *cmd*, or ``"unknown"``."""
    try:
        result = run_tool(tool, cmd, cwd, timeout=60)
    except ToolError:
        return "unknown"
    match = _VERSION_RE.search(result.stdout)
    return match.group(1) if match else "unknown"


def which(executable: str) -> Optional[str]:
    return shutil.which(executable)


class ToolAdapter(ABC):
    """Runs one external tool and returns its validated report.

    Subclasses implement :meth:`collect`; :meth:`run` wraps it so that no
    exception ever escapes an adapter.
    """

    kind: ToolKind

    @property
    def name(self) -> str:
        return self.kind.value

    @abstractmethod
    def collect(self, context: AdapterContext) -> tuple[Payload, str]:
        """Produce ``(payload, tool_version)`` or raise a ToolError."""

    def run(self, context: AdapterContext) -> ToolReport:
        logger.info("Running %s", self.name)
        try:
            payload, version = self.collect(context)
        except ToolError as e:
            logger.warning("%s failed: %s", self.name, e)
            return ToolReport.failure(self.kind, str(e))
        except Exception as e:
            logger.warning("%s failed unexpectedly: %s", self.name, e, exc_info=True)
            return ToolReport.failure(self.kind, f"{type(e).__name__}: {e}")
        report = ToolReport(
            kind=self.kind,
            version=version,
            generated_at=utc_now_iso(),
            payload=payload,
        )
        logger.info("%s complete: %s", self.name, self.summarize(payload))
        return report

    def summarize(self, payload: Payload) -> str:
        return type(payload).__name__
