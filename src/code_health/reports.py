"""Typed tool reports.

Each adapter turns its tool's native output into one of the payload schemas
below and wraps it in a :class:`ToolReport`.  Validation happens here, at
the adapter boundary: anything that does not fit raises
:class:`~code_health.exceptions.ToolOutputError`, which the adapter turns
into a failed report instead of letting loosely-typed data reach the
aggregator.

Reports are persisted as JSON (``to_dict``/``from_dict``) so a finished
cycle can be inspected on disk.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Optional, Union

from .exceptions import ToolOutputError


class ToolKind(str, Enum):
    """The four analyzers; values double as report names on disk."""

    LINT = "eslint"
    DEPENDENCY_GRAPH = "depcruise"
    DEAD_CODE = "knip"
    LINE_COUNT = "cloc"


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ── validation helpers ────────────────────────────────────────────────

_MISSING = object()


def _get(data: Any, key: str, expected: Any, tool: str, default: Any = _MISSING) -> Any:
    if not isinstance(data, dict):
        raise ToolOutputError(tool, f"expected object, got {type(data).__name__}")
    value = data.get(key, _MISSING)
    if value is _MISSING or value is None:
        if default is _MISSING:
            raise ToolOutputError(tool, f"missing field '{key}'")
        return default
    if expected is int:
        # JSON has no int/float distinction; bools are not counts.
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ToolOutputError(tool, f"field '{key}' must be a number")
        return int(value)
    if not isinstance(value, expected):
        raise ToolOutputError(tool, f"field '{key}' has type {type(value).__name__}")
    return value


def _list(data: Any, key: str, tool: str) -> list:
    return _get(data, key, list, tool, default=[])


# ── lint ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class LintMessage:
    rule_id: str
    message: str
    line: int = 0
    column: int = 0
    severity: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "ruleId": self.rule_id,
            "severity": self.severity,
            "message": self.message,
            "line": self.line,
            "column": self.column,
        }


@dataclass(frozen=True)
class LintFileResult:
    file_path: str
    messages: tuple[LintMessage, ...] = ()
    error_count: int = 0
    warning_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "filePath": self.file_path,
            "messages": [m.to_dict() for m in self.messages],
            "errorCount": self.error_count,
            "warningCount": self.warning_count,
        }


@dataclass(frozen=True)
class LintReport:
    """ESLint results; messages without a rule id are dropped on parse."""

    results: tuple[LintFileResult, ...] = ()

    @classmethod
    def from_dict(cls, data: Any, tool: str = ToolKind.LINT.value) -> LintReport:
        raw_results = data if isinstance(data, list) else _list(data, "results", tool)
        results = []
        for raw in raw_results:
            messages = []
            for m in _list(raw, "messages", tool):
                rule_id = _get(m, "ruleId", str, tool, default=None)
                if rule_id is None:
                    continue
                messages.append(
                    LintMessage(
                        rule_id=rule_id,
                        message=_get(m, "message", str, tool, default=""),
                        line=_get(m, "line", int, tool, default=0),
                        column=_get(m, "column", int, tool, default=0),
                        severity=_get(m, "severity", int, tool, default=1),
                    )
                )
            results.append(
                LintFileResult(
                    file_path=_get(raw, "filePath", str, tool),
                    messages=tuple(messages),
                    error_count=_get(raw, "errorCount", int, tool, default=0),
                    warning_count=_get(raw, "warningCount", int, tool, default=0),
                )
            )
        return cls(results=tuple(results))

    def to_dict(self) -> dict[str, Any]:
        return {"results": [r.to_dict() for r in self.results]}


# ── dependency graph ──────────────────────────────────────────────────


@dataclass(frozen=True)
class DependencyRecord:
    resolved: str
    module: str = ""
    dependency_types: tuple[str, ...] = ()
    circular: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "resolved": self.resolved,
            "module": self.module,
            "dependencyTypes": list(self.dependency_types),
            "circular": self.circular,
        }


@dataclass(frozen=True)
class ModuleRecord:
    source: str
    dependencies: tuple[DependencyRecord, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"source": self.source, "dependencies": [d.to_dict() for d in self.dependencies]}


@dataclass(frozen=True)
class Violation:
    from_: str
    to: str
    rule_name: str
    severity: str = "info"
    cycle: tuple[str, ...] = ()

    @property
    def is_circular(self) -> bool:
        return len(self.cycle) > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "from": self.from_,
            "to": self.to,
            "rule": {"name": self.rule_name, "severity": self.severity},
            "cycle": list(self.cycle),
        }


def _cycle_members(raw_cycle: list, tool: str) -> tuple[str, ...]:
    # dependency-cruiser >= 13 reports cycle steps as {"name": ..., "dependencyTypes": [...]}
    members = []
    for step in raw_cycle:
        if isinstance(step, str):
            members.append(step)
        elif isinstance(step, dict):
            members.append(_get(step, "name", str, tool))
        else:
            raise ToolOutputError(tool, "cycle entries must be strings or objects")
    return tuple(members)


@dataclass(frozen=True)
class DependencyGraphReport:
    modules: tuple[ModuleRecord, ...] = ()
    violations: tuple[Violation, ...] = ()
    total_cruised: int = 0

    @classmethod
    def from_dict(cls, data: Any, tool: str = ToolKind.DEPENDENCY_GRAPH.value) -> DependencyGraphReport:
        modules = []
        for raw in _list(data, "modules", tool):
            deps = []
            for d in _list(raw, "dependencies", tool):
                deps.append(
                    DependencyRecord(
                        resolved=_get(d, "resolved", str, tool, default=""),
                        module=_get(d, "module", str, tool, default=""),
                        dependency_types=tuple(_list(d, "dependencyTypes", tool)),
                        circular=bool(_get(d, "circular", bool, tool, default=False)),
                    )
                )
            modules.append(ModuleRecord(source=_get(raw, "source", str, tool), dependencies=tuple(deps)))

        summary = _get(data, "summary", dict, tool, default={})
        violations = []
        for v in _list(summary, "violations", tool):
            rule = _get(v, "rule", dict, tool, default={})
            violations.append(
                Violation(
                    from_=_get(v, "from", str, tool, default=""),
                    to=_get(v, "to", str, tool, default=""),
                    rule_name=_get(rule, "name", str, tool, default="unknown"),
                    severity=_get(rule, "severity", str, tool, default="info"),
                    cycle=_cycle_members(_list(v, "cycle", tool), tool),
                )
            )
        return cls(
            modules=tuple(modules),
            violations=tuple(violations),
            total_cruised=_get(summary, "totalCruised", int, tool, default=len(modules)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "modules": [m.to_dict() for m in self.modules],
            "summary": {
                "violations": [v.to_dict() for v in self.violations],
                "totalCruised": self.total_cruised,
            },
        }


# ── dead code ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class UnusedFile:
    file: str


@dataclass(frozen=True)
class UnusedExport:
    file: str
    symbol: str
    line: Optional[int] = None


@dataclass(frozen=True)
class DeadCodeReport:
    files: tuple[UnusedFile, ...] = ()
    exports: tuple[UnusedExport, ...] = ()

    @classmethod
    def from_dict(cls, data: Any, tool: str = ToolKind.DEAD_CODE.value) -> DeadCodeReport:
        files = []
        for f in _list(data, "files", tool):
            files.append(UnusedFile(file=f if isinstance(f, str) else _get(f, "file", str, tool)))
        exports = [
            UnusedExport(
                file=_get(e, "file", str, tool),
                symbol=_get(e, "symbol", str, tool),
                line=_get(e, "line", int, tool, default=None),
            )
            for e in _list(data, "exports", tool)
        ]
        return cls(files=tuple(files), exports=tuple(exports))

    def to_dict(self) -> dict[str, Any]:
        return {
            "files": [{"file": f.file} for f in self.files],
            "exports": [
                {"file": e.file, "symbol": e.symbol, "line": e.line} for e in self.exports
            ],
        }


# ── line count ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class FileLineCount:
    file: str
    language: str = "Unknown"
    blank: int = 0
    comment: int = 0
    code: int = 0

    @property
    def loc(self) -> int:
        return self.blank + self.comment + self.code

    def to_dict(self) -> dict[str, Any]:
        return {
            "file": self.file,
            "language": self.language,
            "blank": self.blank,
            "comment": self.comment,
            "code": self.code,
            "loc": self.loc,
        }


@dataclass(frozen=True)
class LineCountReport:
    files: tuple[FileLineCount, ...] = ()

    @classmethod
    def from_dict(cls, data: Any, tool: str = ToolKind.LINE_COUNT.value) -> LineCountReport:
        files = []
        for f in _list(data, "files", tool):
            counts = {k: _get(f, k, int, tool, default=0) for k in ("blank", "comment", "code")}
            if any(v < 0 for v in counts.values()):
                raise ToolOutputError(tool, "line counts must be non-negative")
            files.append(
                FileLineCount(
                    file=_get(f, "file", str, tool),
                    language=_get(f, "language", str, tool, default="Unknown"),
                    **counts,
                )
            )
        return cls(files=tuple(files))

    @property
    def summary(self) -> dict[str, int]:
        blank = sum(f.blank for f in self.files)
        comment = sum(f.comment for f in self.files)
        code = sum(f.code for f in self.files)
        return {
            "filesCount": len(self.files),
            "totalBlank": blank,
            "totalComment": comment,
            "totalCode": code,
            "totalLines": blank + comment + code,
        }

    def to_dict(self) -> dict[str, Any]:
        return {"files": [f.to_dict() for f in self.files], "summary": self.summary}


Payload = Union[LintReport, DependencyGraphReport, DeadCodeReport, LineCountReport]

PAYLOAD_TYPES: dict[ToolKind, type] = {
    ToolKind.LINT: LintReport,
    ToolKind.DEPENDENCY_GRAPH: DependencyGraphReport,
    ToolKind.DEAD_CODE: DeadCodeReport,
    ToolKind.LINE_COUNT: LineCountReport,
}


# ── envelope ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ToolReport:
    """One tool's output for one run, or the record of its failure."""

    kind: ToolKind
    version: str = "unknown"
    generated_at: str = field(default_factory=utc_now_iso)
    payload: Optional[Payload] = None
    error: Optional[str] = None

    def __post_init__(self) -> None:
        expected = PAYLOAD_TYPES[self.kind]
        if self.payload is not None and not isinstance(self.payload, expected):
            raise TypeError(
                f"{self.kind.value} report needs {expected.__name__}, "
                f"got {type(self.payload).__name__}"
            )

    @property
    def failed(self) -> bool:
        return self.error is not None or self.payload is None

    @classmethod
    def failure(cls, kind: ToolKind, error: str, version: str = "unknown") -> ToolReport:
        return cls(kind=kind, version=version, error=error)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "version": self.version,
            "generatedAt": self.generated_at,
            "error": self.error,
            "payload": self.payload.to_dict() if self.payload is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolReport:
        """Rebuild a persisted report; raises ToolOutputError on bad input."""
        try:
            kind = ToolKind(data.get("kind"))
        except ValueError:
            raise ToolOutputError("report", f"unknown report kind {data.get('kind')!r}")
        raw_payload = data.get("payload")
        payload = (
            PAYLOAD_TYPES[kind].from_dict(raw_payload, kind.value)
            if raw_payload is not None
            else None
        )
        return cls(
            kind=kind,
            version=str(data.get("version") or "unknown"),
            generated_at=str(data.get("generatedAt") or ""),
            payload=payload,
            error=data.get("error"),
        )


@dataclass(frozen=True)
class ReportSet:
    """The reports of one cycle; any of them may be missing."""

    lint: Optional[ToolReport] = None
    dependency_graph: Optional[ToolReport] = None
    dead_code: Optional[ToolReport] = None
    line_count: Optional[ToolReport] = None

    _FIELDS = {
        ToolKind.LINT: "lint",
        ToolKind.DEPENDENCY_GRAPH: "dependency_graph",
        ToolKind.DEAD_CODE: "dead_code",
        ToolKind.LINE_COUNT: "line_count",
    }

    @classmethod
    def from_reports(cls, reports: Iterable[ToolReport]) -> ReportSet:
        values: dict[str, ToolReport] = {}
        for report in reports:
            values[cls._FIELDS[report.kind]] = report
        return cls(**values)

    def get(self, kind: ToolKind) -> Optional[ToolReport]:
        return getattr(self, self._FIELDS[kind])

    def usable(self, kind: ToolKind) -> Optional[Payload]:
        """Payload of *kind* if the tool produced one, else None."""
        report = self.get(kind)
        if report is None or report.failed:
            return None
        return report.payload

    def __iter__(self):
        for kind in ToolKind:
            report = self.get(kind)
            if report is not None:
                yield report
