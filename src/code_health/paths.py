"""On-disk hand-off between adapters and the aggregator.

Layout::

    ~/.code-health/<md5(root)[:8]>/.reports/
        eslint.json  depcruise.json  knip.json  cloc.json   (ToolReport)
        aggregated.json                                     (Snapshot)
        meta.json                                           (tool presence/versions)

The directory is disposable: it is wiped at the start of every cycle.
Scratch files written by an adapter are prefixed with its report name.
"""

from __future__ import annotations

import hashlib
import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Optional, Union

from .exceptions import ToolOutputError
from .logging_config import get_logger
from .reports import ToolKind, ToolReport

logger = get_logger(__name__)

STATE_DIR_NAME = ".code-health"


def root_hash(root: Union[str, Path]) -> str:
    return hashlib.md5(str(root).encode("utf-8")).hexdigest()[:8]


def get_reports_dir(root: Union[str, Path], base: Optional[Path] = None) -> Path:
    """Per-root reports directory, created if missing."""
    home = base if base is not None else Path.home()
    reports_dir = home / STATE_DIR_NAME / root_hash(root) / ".reports"
    reports_dir.mkdir(parents=True, exist_ok=True)
    return reports_dir


def clean_reports_dir(reports_dir: Path) -> None:
    if reports_dir.exists():
        shutil.rmtree(reports_dir, ignore_errors=True)
    reports_dir.mkdir(parents=True, exist_ok=True)


def report_path(reports_dir: Path, name: str) -> Path:
    return reports_dir / f"{name}.json"


def write_json(reports_dir: Path, name: str, data: Any) -> Path:
    """Write *data* atomically (temp file + rename) so readers never see half a file."""
    target = report_path(reports_dir, name)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{name}-", suffix=".tmp", dir=str(target.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp, target)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
    return target


def read_json(reports_dir: Path, name: str) -> Optional[Any]:
    path = report_path(reports_dir, name)
    if not path.exists():
        return None
    return json.loads(path.read_text(encoding="utf-8"))


def write_report(reports_dir: Path, report: ToolReport) -> Path:
    return write_json(reports_dir, report.kind.value, report.to_dict())


def read_report(reports_dir: Path, kind: ToolKind) -> Optional[ToolReport]:
    """Load a persisted report; unreadable files count as absent."""
    try:
        data = read_json(reports_dir, kind.value)
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Could not read %s report: %s", kind.value, exc)
        return None
    if data is None:
        return None
    try:
        return ToolReport.from_dict(data)
    except ToolOutputError as exc:
        logger.warning("Discarding %s report: %s", kind.value, exc)
        return None
