"""Snapshot queries behind the HTTP endpoints.

These functions are independent of Starlette: they read the store and
either return JSON-ready dicts or raise a :class:`ServingError` subclass
that the app maps onto a status code.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from ..aggregate import build_resolver
from ..exceptions import FileNotTrackedError, SnapshotNotReadyError
from ..extractors import enrich_file_metrics
from ..identity import FileIdentity, canonicalize
from ..pipeline import AnalysisResult
from ..reports import DependencyGraphReport, LineCountReport, LintReport, ToolKind
from ..snapshot import FileMetrics
from .state import SnapshotStore

logger = logging.getLogger(__name__)

AVAILABLE_FILES_HINT = 5


def _latest(store: SnapshotStore) -> AnalysisResult:
    result = store.latest()
    if result is None:
        raise SnapshotNotReadyError()
    return result


def get_stats(store: SnapshotStore) -> dict[str, Any]:
    """The latest snapshot as JSON."""
    return _latest(store).snapshot.to_dict()


def _base_metrics(result: AnalysisResult, file: FileIdentity) -> FileMetrics:
    for metrics in result.snapshot.largest_files:
        if metrics.file == file:
            return metrics
    line_count = result.reports.usable(ToolKind.LINE_COUNT)
    if isinstance(line_count, LineCountReport):
        for f in line_count.files:
            if canonicalize(f.file, result.root) == file:
                return FileMetrics(
                    file=file, loc=f.loc, code=f.code, comment=f.comment, blank=f.blank
                )
    return FileMetrics(file=file, loc=0, code=0, comment=0, blank=0)


def file_detail(store: SnapshotStore, reference: str) -> dict[str, Any]:
    """Everything known about one file.

    Raises:
        SnapshotNotReadyError: No snapshot has been published yet
        FileNotTrackedError: *reference* does not resolve to a counted file
    """
    result = _latest(store)
    snapshot = result.snapshot
    universe = build_resolver(result.reports, result.root)
    file = universe.resolve(reference)
    if file is None:
        raise FileNotTrackedError(
            reference,
            available=[m.file for m in snapshot.largest_files[:AVAILABLE_FILES_HINT]],
        )

    lint = result.reports.usable(ToolKind.LINT)
    graph = result.reports.usable(ToolKind.DEPENDENCY_GRAPH)
    lint = lint if isinstance(lint, LintReport) else None
    graph = graph if isinstance(graph, DependencyGraphReport) else None

    (metrics,) = enrich_file_metrics((_base_metrics(result, file),), lint, graph, universe)

    eslint_issues = []
    if lint is not None:
        for r in lint.results:
            if universe.resolve(r.file_path) == file:
                eslint_issues.extend(m.to_dict() for m in r.messages)

    dependencies: list[dict[str, Any]] = []
    dependents: list[str] = []
    if graph is not None:
        for module in graph.modules:
            if universe.resolve(module.source) == file:
                dependencies.extend(
                    {"module": d.resolved or d.module, "circular": d.circular, "valid": True}
                    for d in module.dependencies
                )
            elif any(
                d.resolved and universe.resolve(d.resolved) == file for d in module.dependencies
            ):
                dependents.append(universe.canonicalize(module.source))

    def about_file(entries):
        return [e.to_dict() for e in entries if universe.resolve(e.file) == file]

    complexity_issues = about_file(snapshot.complex_functions)
    line_violations = about_file(snapshot.max_line_offenders)
    dead_code_issues = about_file(snapshot.dead_code)

    return {
        "metrics": metrics.to_dict(),
        "eslintIssues": eslint_issues,
        "dependencies": dependencies,
        "dependents": dependents,
        "complexityIssues": complexity_issues,
        "lineViolations": line_violations,
        "deadCodeIssues": dead_code_issues,
        "summary": {
            "totalIssues": len(eslint_issues)
            + len(complexity_issues)
            + len(line_violations)
            + len(dead_code_issues),
            "hasCircularDeps": any(d["circular"] for d in dependencies),
            "isDeadCode": bool(dead_code_issues),
        },
    }


def not_found_body(error: FileNotTrackedError) -> dict[str, Any]:
    return {
        "error": error.message,
        "searchedFor": error.reference,
        "availableFiles": error.available,
    }


def export_filename(generated_at: Optional[str]) -> str:
    stamp = (generated_at or "snapshot").replace(":", "").replace("-", "").split(".")[0]
    return f"code-health-{stamp}.json"
