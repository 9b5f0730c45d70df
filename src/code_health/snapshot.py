"""The unified, immutable analysis result.

A :class:`Snapshot` is built once by the aggregator and never mutated;
publishing a newer one swaps the reference.  ``to_dict`` produces the JSON
contract the dashboard consumes (camelCase keys).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Optional

from .identity import FileIdentity

OffenderKind = Literal["file", "function"]
DeadCodeKind = Literal["file", "export"]


@dataclass(frozen=True)
class FileMetrics:
    file: FileIdentity
    loc: int
    code: int
    comment: int
    blank: int
    functions: Optional[int] = None
    avg_function_length: Optional[int] = None
    max_function_length: Optional[int] = None
    complexity: Optional[int] = None
    dependencies: Optional[int] = None
    dependents: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "file": self.file,
            "loc": self.loc,
            "code": self.code,
            "comment": self.comment,
            "blank": self.blank,
        }
        optional = {
            "functions": self.functions,
            "avgFunctionLength": self.avg_function_length,
            "maxFunctionLength": self.max_function_length,
            "complexity": self.complexity,
            "dependencies": self.dependencies,
            "dependents": self.dependents,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data


@dataclass(frozen=True)
class ComplexFunction:
    file: FileIdentity
    line: int
    rule_id: str
    message: str
    metric: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "file": self.file,
            "line": self.line,
            "ruleId": self.rule_id,
            "message": self.message,
        }
        if self.metric is not None:
            data["metric"] = self.metric
        return data


@dataclass(frozen=True)
class MaxLineOffender:
    file: FileIdentity
    kind: OffenderKind
    value: int
    limit: int

    def to_dict(self) -> dict[str, Any]:
        return {"file": self.file, "kind": self.kind, "value": self.value, "limit": self.limit}


@dataclass(frozen=True)
class Cycle:
    paths: tuple[FileIdentity, ...]

    @property
    def members(self) -> frozenset[FileIdentity]:
        return frozenset(self.paths)

    def to_dict(self) -> dict[str, Any]:
        return {"paths": list(self.paths)}


@dataclass(frozen=True)
class DeadCodeItem:
    file: FileIdentity
    kind: DeadCodeKind
    symbol: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"file": self.file, "kind": self.kind}
        if self.symbol is not None:
            data["symbol"] = self.symbol
        return data


@dataclass(frozen=True)
class LanguageShare:
    name: str
    files: int
    lines: int
    percentage: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "files": self.files,
            "lines": self.lines,
            "percentage": self.percentage,
        }


@dataclass(frozen=True)
class Composition:
    total_files: int
    total_lines: int
    code_lines: int
    comment_lines: int
    blank_lines: int
    avg_file_size: int
    median_file_size: int
    languages: tuple[LanguageShare, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalFiles": self.total_files,
            "totalLines": self.total_lines,
            "codeLines": self.code_lines,
            "commentLines": self.comment_lines,
            "blankLines": self.blank_lines,
            "avgFileSize": self.avg_file_size,
            "medianFileSize": self.median_file_size,
            "languages": [lang.to_dict() for lang in self.languages],
        }


@dataclass(frozen=True)
class ToolStatus:
    """Whether a tool's report was present, usable, and which version made it."""

    name: str
    present: bool
    failed: bool
    version: str = "N/A"

    def to_dict(self) -> dict[str, Any]:
        return {
            "present": self.present,
            "failed": self.failed,
            "version": self.version,
        }


@dataclass(frozen=True)
class Snapshot:
    largest_files: tuple[FileMetrics, ...]
    complex_functions: tuple[ComplexFunction, ...]
    max_line_offenders: tuple[MaxLineOffender, ...]
    cycles: tuple[Cycle, ...]
    dead_code: tuple[DeadCodeItem, ...]
    generated_at: str
    composition: Optional[Composition] = None
    tools: tuple[ToolStatus, ...] = ()
    ambiguous_matches: int = 0

    def referenced_files(self) -> set[FileIdentity]:
        """Every file identity mentioned anywhere in the snapshot."""
        files = {m.file for m in self.largest_files}
        files.update(f.file for f in self.complex_functions)
        files.update(o.file for o in self.max_line_offenders)
        files.update(d.file for d in self.dead_code)
        for cycle in self.cycles:
            files.update(cycle.paths)
        return files

    @property
    def issue_count(self) -> int:
        return (
            len(self.complex_functions)
            + len(self.max_line_offenders)
            + len(self.cycles)
            + len(self.dead_code)
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "largestFiles": [m.to_dict() for m in self.largest_files],
            "complexFunctions": [f.to_dict() for f in self.complex_functions],
            "maxLineOffenders": [o.to_dict() for o in self.max_line_offenders],
            "cycles": [c.to_dict() for c in self.cycles],
            "deadCode": [d.to_dict() for d in self.dead_code],
            "generatedAt": self.generated_at,
            "tools": {t.name: t.to_dict() for t in self.tools},
            "dataQuality": {"ambiguousMatches": self.ambiguous_matches},
        }
        if self.composition is not None:
            data["composition"] = self.composition.to_dict()
        return data

    def meta(self) -> dict[str, Any]:
        """Tool presence and versions, persisted next to the snapshot."""
        return {
            "generatedAt": self.generated_at,
            "reports": {t.name: t.present and not t.failed for t in self.tools},
            "versions": {t.name: t.version for t in self.tools},
        }
