"""Merge tool reports into one :class:`Snapshot`.

The aggregator never raises.  A failed or missing report leaves only its
own slices empty, and an extractor that blows up is logged and contributes
nothing.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, TypeVar, Union

from .extractors import (
    extract_complexity_issues,
    extract_composition,
    extract_cycles,
    extract_dead_code,
    extract_largest_files,
)
from .identity import IdentityResolver, canonicalize, is_absolute
from .logging_config import get_logger
from .reports import (
    DependencyGraphReport,
    LineCountReport,
    LintReport,
    ReportSet,
    ToolKind,
    utc_now_iso,
)
from .snapshot import Snapshot, ToolStatus

logger = get_logger(__name__)

T = TypeVar("T")


def known_files(reports: ReportSet, root: Union[str, Path]) -> list[str]:
    """Full paths of the files under analysis, the candidates references resolve to.

    The line counter walks the whole tree, so when its report is usable its
    file list is the universe.  Otherwise the universe is built from ESLint
    paths that are absolute and under *root* plus dependency-cruiser module
    sources, which are relative to *root*.  Knip paths may be truncated and
    never become candidates.
    """
    line_count = reports.usable(ToolKind.LINE_COUNT)
    if isinstance(line_count, LineCountReport) and line_count.files:
        return [f.file for f in line_count.files]

    paths: list[str] = []
    lint = reports.usable(ToolKind.LINT)
    if isinstance(lint, LintReport):
        for r in lint.results:
            if is_absolute(r.file_path) and not is_absolute(canonicalize(r.file_path, root)):
                paths.append(r.file_path)
    graph = reports.usable(ToolKind.DEPENDENCY_GRAPH)
    if isinstance(graph, DependencyGraphReport):
        paths.extend(m.source for m in graph.modules)
    return paths


def build_resolver(reports: ReportSet, root: Union[str, Path]) -> IdentityResolver:
    return IdentityResolver(root, known_files(reports, root))


def tool_statuses(reports: ReportSet) -> tuple[ToolStatus, ...]:
    statuses = []
    for kind in ToolKind:
        report = reports.get(kind)
        if report is None:
            statuses.append(ToolStatus(name=kind.value, present=False, failed=False))
        else:
            statuses.append(
                ToolStatus(
                    name=kind.value,
                    present=True,
                    failed=report.failed,
                    version=report.version,
                )
            )
    return tuple(statuses)


def _safely(name: str, default: T, fn: Callable[[], T]) -> T:
    try:
        return fn()
    except Exception:
        logger.exception("Extractor %s failed; leaving its slice empty", name)
        return default


def aggregate(reports: ReportSet, root: Union[str, Path]) -> Snapshot:
    """Build a snapshot from whatever reports are present and usable."""
    for report in reports:
        if report.failed:
            logger.warning("%s report failed: %s", report.kind.value, report.error)

    resolver = _safely("identity", IdentityResolver(root), lambda: build_resolver(reports, root))

    line_count = reports.usable(ToolKind.LINE_COUNT)
    lint = reports.usable(ToolKind.LINT)
    graph = reports.usable(ToolKind.DEPENDENCY_GRAPH)
    dead = reports.usable(ToolKind.DEAD_CODE)

    largest = _safely("largest_files", (), lambda: extract_largest_files(line_count, resolver))
    complex_functions, offenders = _safely(
        "complexity", ((), ()), lambda: extract_complexity_issues(lint, resolver)
    )
    cycles = _safely("cycles", (), lambda: extract_cycles(graph, resolver))
    dead_code = _safely("dead_code", (), lambda: extract_dead_code(dead, resolver))
    composition = _safely("composition", None, lambda: extract_composition(line_count, resolver))

    snapshot = Snapshot(
        largest_files=largest,
        complex_functions=complex_functions,
        max_line_offenders=offenders,
        cycles=cycles,
        dead_code=dead_code,
        composition=composition,
        tools=tool_statuses(reports),
        ambiguous_matches=resolver.ambiguous,
        generated_at=utc_now_iso(),
    )
    logger.info(
        "Aggregated %d files, %d issues (%d ambiguous references dropped)",
        len(snapshot.largest_files),
        snapshot.issue_count,
        snapshot.ambiguous_matches,
    )
    return snapshot

