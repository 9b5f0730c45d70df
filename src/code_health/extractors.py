"""Extractors: pure functions from tool payloads to snapshot slices.

Every extractor takes typed payloads plus an :class:`IdentityResolver` and
returns immutable snapshot records.  None of them touch the file system, so
running one twice over the same input yields the same output.
"""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass, replace
from typing import Iterable, Optional

import numpy as np

from .identity import FileIdentity, IdentityResolver
from .reports import DeadCodeReport, DependencyGraphReport, LineCountReport, LintReport
from .snapshot import (
    ComplexFunction,
    Composition,
    Cycle,
    DeadCodeItem,
    FileMetrics,
    LanguageShare,
    MaxLineOffender,
    OffenderKind,
)

LARGEST_FILES_LIMIT = 50

_FIRST_INT = re.compile(r"(\d+)")

LANGUAGE_BY_EXTENSION: dict[str, str] = {
    ".js": "JavaScript",
    ".jsx": "JavaScript",
    ".mjs": "JavaScript",
    ".cjs": "JavaScript",
    ".ts": "TypeScript",
    ".tsx": "TypeScript",
    ".py": "Python",
    ".rb": "Ruby",
    ".go": "Go",
    ".rs": "Rust",
    ".java": "Java",
    ".c": "C",
    ".cpp": "C++",
    ".h": "C Header",
    ".hpp": "C++ Header",
    ".css": "CSS",
    ".scss": "SCSS",
    ".sass": "Sass",
    ".less": "Less",
    ".html": "HTML",
    ".xml": "XML",
    ".yaml": "YAML",
    ".yml": "YAML",
    ".json": "JSON",
}


# ── lint rule table ───────────────────────────────────────────────────


@dataclass(frozen=True)
class ComplexityRule:
    rule_id: str
    pattern: re.Pattern[str]

    def metric(self, message: str) -> Optional[int]:
        match = self.pattern.search(message) or _FIRST_INT.search(message)
        return int(match.group(1)) if match else None


@dataclass(frozen=True)
class MaxLinesRule:
    rule_id: str
    kind: OffenderKind
    pattern: re.Pattern[str]

    def measure(self, message: str) -> Optional[tuple[int, int]]:
        """(observed, limit) parsed from an ESLint max-lines message."""
        match = self.pattern.search(message)
        if match:
            return int(match.group(1)), int(match.group(2))
        numbers = _FIRST_INT.findall(message)
        if len(numbers) >= 2:
            return int(numbers[0]), int(numbers[1])
        return None


_MAX_LINES_PATTERN = re.compile(r"too many lines \((\d+)\)\. Maximum allowed is (\d+)", re.I)

COMPLEXITY_RULES: dict[str, ComplexityRule] = {
    rule.rule_id: rule
    for rule in (
        # "Refactor this function to reduce its Cognitive Complexity from 21 to the 15 allowed."
        ComplexityRule("sonarjs/cognitive-complexity", re.compile(r"complexity from (\d+)", re.I)),
        # "Function 'run' has a complexity of 21. Maximum allowed is 15."
        ComplexityRule("complexity", re.compile(r"complexity of (\d+)", re.I)),
    )
}

MAX_LINES_RULES: dict[str, MaxLinesRule] = {
    rule.rule_id: rule
    for rule in (
        MaxLinesRule("max-lines", "file", _MAX_LINES_PATTERN),
        MaxLinesRule("max-lines-per-function", "function", _MAX_LINES_PATTERN),
    )
}


def _identify(resolver: IdentityResolver, reference: str) -> FileIdentity:
    """Resolved identity, or the canonical form when nothing resolves."""
    resolved = resolver.resolve(reference)
    return resolved if resolved is not None else resolver.canonicalize(reference)


def language_for(path: str, reported: str = "Unknown") -> str:
    ext = posixpath.splitext(path)[1].lower()
    return LANGUAGE_BY_EXTENSION.get(ext, reported or "Unknown")


# ── extractors ────────────────────────────────────────────────────────


def extract_largest_files(
    line_count: Optional[LineCountReport],
    resolver: IdentityResolver,
    limit: int = LARGEST_FILES_LIMIT,
) -> tuple[FileMetrics, ...]:
    """Counted files, largest first, capped at *limit*."""
    if line_count is None:
        return ()
    metrics = [
        FileMetrics(
            file=_identify(resolver, f.file),
            loc=f.loc,
            code=f.code,
            comment=f.comment,
            blank=f.blank,
        )
        for f in line_count.files
    ]
    metrics.sort(key=lambda m: (-m.loc, m.file))
    return tuple(metrics[:limit])


def extract_complexity_issues(
    lint: Optional[LintReport],
    resolver: IdentityResolver,
) -> tuple[tuple[ComplexFunction, ...], tuple[MaxLineOffender, ...]]:
    """Split lint messages into complexity findings and max-lines offenders.

    Rules outside :data:`COMPLEXITY_RULES` and :data:`MAX_LINES_RULES` are
    ignored.
    """
    if lint is None:
        return (), ()

    functions: list[ComplexFunction] = []
    offenders: list[MaxLineOffender] = []
    for result in lint.results:
        file = _identify(resolver, result.file_path)
        for msg in result.messages:
            complexity_rule = COMPLEXITY_RULES.get(msg.rule_id)
            if complexity_rule is not None:
                functions.append(
                    ComplexFunction(
                        file=file,
                        line=msg.line,
                        rule_id=msg.rule_id,
                        message=msg.message,
                        metric=complexity_rule.metric(msg.message),
                    )
                )
                continue
            lines_rule = MAX_LINES_RULES.get(msg.rule_id)
            if lines_rule is None:
                continue
            measured = lines_rule.measure(msg.message)
            if measured is None:
                continue
            value, limit = measured
            offenders.append(MaxLineOffender(file=file, kind=lines_rule.kind, value=value, limit=limit))

    functions.sort(key=lambda f: (f.metric is None, -(f.metric or 0), f.file, f.line))
    offenders.sort(key=lambda o: (-o.value, o.file, o.kind))
    return tuple(functions), tuple(offenders)


def extract_cycles(
    dependency_graph: Optional[DependencyGraphReport],
    resolver: IdentityResolver,
) -> tuple[Cycle, ...]:
    """Circular-dependency violations, one entry per distinct member set."""
    if dependency_graph is None:
        return ()

    seen: set[frozenset[FileIdentity]] = set()
    cycles: list[Cycle] = []
    for violation in dependency_graph.violations:
        if not violation.is_circular:
            continue
        paths = [_identify(resolver, member) for member in violation.cycle]
        if len(paths) > 1 and paths[-1] == paths[0]:
            paths.pop()
        members = frozenset(paths)
        if members in seen:
            continue
        seen.add(members)
        cycles.append(Cycle(paths=tuple(paths)))
    return tuple(cycles)


def extract_dead_code(
    dead_code: Optional[DeadCodeReport],
    resolver: IdentityResolver,
) -> tuple[DeadCodeItem, ...]:
    """Unused files, then unused exports, each in report order."""
    if dead_code is None:
        return ()
    items = [DeadCodeItem(file=_identify(resolver, f.file), kind="file") for f in dead_code.files]
    items.extend(
        DeadCodeItem(file=_identify(resolver, e.file), kind="export", symbol=e.symbol)
        for e in dead_code.exports
    )
    return tuple(items)


def _largest_remainder(values: np.ndarray, total: int) -> np.ndarray:
    """Integer percentages of *values* over *total* summing to exactly 100."""
    if total <= 0 or len(values) == 0:
        return np.zeros(len(values), dtype=int)
    exact = values * 100.0 / total
    floors = np.floor(exact).astype(int)
    shortfall = 100 - int(floors.sum())
    if shortfall > 0:
        # Stable sort keeps earlier entries first on equal remainders.
        order = np.argsort(-(exact - floors), kind="stable")
        floors[order[:shortfall]] += 1
    return floors


def extract_composition(
    line_count: Optional[LineCountReport],
    resolver: IdentityResolver,
) -> Optional[Composition]:
    """Size statistics and language mix over every counted file."""
    if line_count is None or not line_count.files:
        return None

    sizes = np.array([f.loc for f in line_count.files], dtype=np.int64)
    total_lines = int(sizes.sum())
    n = len(sizes)

    by_language: dict[str, list[int]] = {}
    for f in line_count.files:
        name = language_for(_identify(resolver, f.file), f.language)
        entry = by_language.setdefault(name, [0, 0])
        entry[0] += 1
        entry[1] += f.code

    names = sorted(by_language, key=lambda name: (-by_language[name][1], name))
    code_per_language = np.array([by_language[name][1] for name in names], dtype=np.int64)
    code_lines = sum(f.code for f in line_count.files)
    percentages = _largest_remainder(code_per_language, code_lines)

    return Composition(
        total_files=n,
        total_lines=total_lines,
        code_lines=code_lines,
        comment_lines=sum(f.comment for f in line_count.files),
        blank_lines=sum(f.blank for f in line_count.files),
        avg_file_size=int(np.floor(total_lines / n + 0.5)),
        median_file_size=int(np.sort(sizes)[n // 2]),
        languages=tuple(
            LanguageShare(
                name=name,
                files=by_language[name][0],
                lines=by_language[name][1],
                percentage=int(pct),
            )
            for name, pct in zip(names, percentages)
        ),
    )


def enrich_file_metrics(
    files: Iterable[FileMetrics],
    lint: Optional[LintReport],
    dependency_graph: Optional[DependencyGraphReport],
    resolver: IdentityResolver,
) -> tuple[FileMetrics, ...]:
    """Attach complexity and dependency counts to *files*.

    ``complexity`` is the highest complexity metric lint reported for the
    file; ``dependencies`` counts its outgoing edges and ``dependents`` the
    modules importing it.  Fields stay None when the source report is
    missing.  Lint and graph paths are resolved against *files* only, so a
    reference that fits several of them is dropped.
    """
    files = tuple(files)
    scoped = resolver.scoped(m.file for m in files)

    complexity: dict[FileIdentity, int] = {}
    if lint is not None:
        for result in lint.results:
            file = scoped.resolve(result.file_path)
            if file is None:
                continue
            for msg in result.messages:
                rule = COMPLEXITY_RULES.get(msg.rule_id)
                metric = rule.metric(msg.message) if rule else None
                if metric is not None and metric > complexity.get(file, -1):
                    complexity[file] = metric

    outgoing: dict[FileIdentity, int] = {}
    importers: dict[FileIdentity, set[str]] = {}
    if dependency_graph is not None:
        for module in dependency_graph.modules:
            source = scoped.resolve(module.source)
            if source is not None:
                outgoing[source] = outgoing.get(source, 0) + len(module.dependencies)
            for dep in module.dependencies:
                if not dep.resolved:
                    continue
                target = scoped.resolve(dep.resolved)
                if target is not None:
                    importers.setdefault(target, set()).add(module.source)

    enriched = []
    for metrics in files:
        changes: dict[str, Optional[int]] = {}
        if lint is not None:
            changes["complexity"] = complexity.get(metrics.file)
        if dependency_graph is not None:
            changes["dependencies"] = outgoing.get(metrics.file, 0)
            changes["dependents"] = len(importers.get(metrics.file, ()))
        enriched.append(replace(metrics, **changes) if changes else metrics)
    return tuple(enriched)
