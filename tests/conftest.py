"""Shared test fixtures for code-health."""

import pytest

from code_health.reports import (
    DeadCodeReport,
    DependencyGraphReport,
    DependencyRecord,
    FileLineCount,
    LineCountReport,
    LintFileResult,
    LintMessage,
    LintReport,
    ModuleRecord,
    ReportSet,
    ToolKind,
    ToolReport,
    UnusedExport,
    UnusedFile,
    Violation,
)

ROOT = "/home/u/proj"


def line_count_report(sizes: dict, language: str = "TypeScript") -> ToolReport:
    """cloc report with every line counted as code."""
    return ToolReport(
        kind=ToolKind.LINE_COUNT,
        version="1.98",
        payload=LineCountReport(
            files=tuple(
                FileLineCount(file=path, language=language, code=loc)
                for path, loc in sizes.items()
            )
        ),
    )


def lint_report(messages_by_file: dict) -> ToolReport:
    return ToolReport(
        kind=ToolKind.LINT,
        version="9.4.0",
        payload=LintReport(
            results=tuple(
                LintFileResult(file_path=path, messages=tuple(messages))
                for path, messages in messages_by_file.items()
            )
        ),
    )


def graph_report(modules=(), cycles=()) -> ToolReport:
    return ToolReport(
        kind=ToolKind.DEPENDENCY_GRAPH,
        version="16.3.0",
        payload=DependencyGraphReport(
            modules=tuple(modules),
            violations=tuple(
                Violation(
                    from_=cycle[0],
                    to=cycle[1],
                    rule_name="no-circular",
                    severity="warn",
                    cycle=tuple(cycle),
                )
                for cycle in cycles
            ),
        ),
    )


def dead_code_report(files=(), exports=()) -> ToolReport:
    return ToolReport(
        kind=ToolKind.DEAD_CODE,
        version="5.17.0",
        payload=DeadCodeReport(
            files=tuple(UnusedFile(file=f) for f in files),
            exports=tuple(UnusedExport(file=f, symbol=s) for f, s in exports),
        ),
    )


def max_lines_message(value: int, limit: int) -> LintMessage:
    return LintMessage(
        rule_id="max-lines",
        message=f"File has too many lines ({value}). Maximum allowed is {limit}.",
        line=limit + 1,
        severity=1,
    )


def complexity_message(value: int, limit: int = 15, line: int = 1) -> LintMessage:
    return LintMessage(
        rule_id="complexity",
        message=f"Function 'run' has a complexity of {value}. Maximum allowed is {limit}.",
        line=line,
        severity=1,
    )


@pytest.fixture
def root():
    return ROOT


@pytest.fixture
def scenario_reports():
    """One report per tool, matching the documented end-to-end example."""
    return ReportSet.from_reports(
        [
            line_count_report({"src/app.ts": 450}),
            lint_report({f"{ROOT}/src/app.ts": [max_lines_message(450, 400)]}),
            graph_report(
                modules=[
                    ModuleRecord(
                        source="src/a.ts",
                        dependencies=(DependencyRecord(resolved="src/b.ts", circular=True),),
                    ),
                    ModuleRecord(
                        source="src/b.ts",
                        dependencies=(DependencyRecord(resolved="src/a.ts", circular=True),),
                    ),
                ],
                cycles=[["src/a.ts", "src/b.ts", "src/a.ts"]],
            ),
            dead_code_report(exports=[("src/unused.ts", "helper")]),
        ]
    )
