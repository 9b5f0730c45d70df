"""Rendering of a snapshot for ``code-health print`` and the MCP tools."""

from __future__ import annotations

import io
from dataclasses import dataclass

from rich.console import Console
from rich.markup import escape

from ..config import ThresholdConfig
from ..snapshot import Snapshot

TOP_N = 5
TOP_CYCLES = 3
CYCLE_PREVIEW = 3


@dataclass(frozen=True)
class ThresholdViolations:
    """Counts of findings exceeding the configured limits."""

    files_over_max_lines: int
    functions_over_max_lines: int
    functions_over_complexity: int

    @property
    def exceeded(self) -> bool:
        return bool(
            self.files_over_max_lines
            or self.functions_over_max_lines
            or self.functions_over_complexity
        )


def threshold_violations(snapshot: Snapshot, thresholds: ThresholdConfig) -> ThresholdViolations:
    """Count offenders strictly above each limit in *thresholds*."""
    return ThresholdViolations(
        files_over_max_lines=sum(
            1
            for o in snapshot.max_line_offenders
            if o.kind == "file" and o.value > thresholds.max_lines
        ),
        functions_over_max_lines=sum(
            1
            for o in snapshot.max_line_offenders
            if o.kind == "function" and o.value > thresholds.max_lines_per_function
        ),
        functions_over_complexity=sum(
            1
            for f in snapshot.complex_functions
            if f.metric is not None and f.metric > thresholds.complexity_threshold
        ),
    )


def _more(
    console: Console, total: int, shown: int, noun: str = "more", indent: str = "   "
) -> None:
    if total > shown:
        console.print(f"{indent}[dim]... and {total - shown} {noun}[/dim]")


def render_text(console: Console, snapshot: Snapshot) -> None:
    """Human-readable report: summary first, then each finding category."""
    rule = "=" * 39
    console.print()
    console.print(f"[bold blue]{rule}[/bold blue]")
    console.print("[bold blue]         CODE HEALTH REPORT[/bold blue]")
    console.print(f"[bold blue]{rule}[/bold blue]")
    console.print()

    console.print("[bold]Summary:[/bold]")
    console.print(f"   Files analyzed: {len(snapshot.largest_files)}")
    console.print(f"   Total issues: {snapshot.issue_count}")
    failed = [t.name for t in snapshot.tools if t.failed or not t.present]
    if failed:
        console.print(f"   [yellow]Missing reports:[/yellow] {', '.join(failed)}")

    if snapshot.largest_files:
        console.print()
        console.print(f"[bold]Top {TOP_N} Largest Files:[/bold]")
        for m in snapshot.largest_files[:TOP_N]:
            console.print(f"   [yellow]{m.loc:>5}[/yellow] lines - {m.file}")

    functions = snapshot.complex_functions
    if functions:
        console.print()
        console.print(f"[bold]Complex Functions ({len(functions)}):[/bold]")
        for f in functions[:TOP_N]:
            metric = f" [{f.metric}]" if f.metric is not None else ""
            console.print(f"   [red]![/red] {escape(f.file)}:{f.line}{escape(metric)}")
            console.print(f"      [dim]{escape(f.message)}[/dim]")
        _more(console, len(functions), TOP_N)

    offenders = snapshot.max_line_offenders
    if offenders:
        console.print()
        console.print(f"[bold]Max Lines Violations ({len(offenders)}):[/bold]")
        for o in offenders[:TOP_N]:
            console.print(f"   [red]![/red] {o.file}")
            console.print(
                f"      {o.kind}: {o.value} lines (limit: {o.limit}, +{o.value - o.limit})"
            )
        _more(console, len(offenders), TOP_N)

    if snapshot.cycles:
        console.print()
        console.print(f"[bold]Dependency Cycles ({len(snapshot.cycles)}):[/bold]")
        for index, cycle in enumerate(snapshot.cycles[:TOP_CYCLES], start=1):
            console.print(f"   [red]Cycle[/red] {index}:")
            for i, path in enumerate(cycle.paths[:CYCLE_PREVIEW]):
                console.print(f"      {'' if i == 0 else '-> '}{path}")
            if len(cycle.paths) > CYCLE_PREVIEW:
                console.print(f"      ... {len(cycle.paths) - CYCLE_PREVIEW} more files")
        _more(console, len(snapshot.cycles), TOP_CYCLES, noun="more cycles")

    if snapshot.dead_code:
        dead_files = [d for d in snapshot.dead_code if d.kind == "file"]
        dead_exports = [d for d in snapshot.dead_code if d.kind == "export"]
        console.print()
        console.print(f"[bold]Dead Code ({len(snapshot.dead_code)} total):[/bold]")
        console.print(f"   Unused files: {len(dead_files)}")
        console.print(f"   Unused exports: {len(dead_exports)}")
        if dead_files:
            console.print()
            console.print("   [dim]Unused files:[/dim]")
            for item in dead_files[:TOP_N]:
                console.print(f"      {item.file}")
            _more(console, len(dead_files), TOP_N, indent="      ")

    console.print()
    console.print(f"[bold blue]{rule}[/bold blue]")
    console.print()


def render_verdict(
    console: Console, violations: ThresholdViolations, thresholds: ThresholdConfig
) -> None:
    if not violations.exceeded:
        console.print("[bold green]All code health checks passed![/bold green]")
        return
    console.print()
    console.print("[bold red]Threshold violations detected:[/bold red]")
    if violations.files_over_max_lines:
        console.print(
            f"[red]   - {violations.files_over_max_lines} files exceed "
            f"{thresholds.max_lines} lines[/red]"
        )
    if violations.functions_over_max_lines:
        console.print(
            f"[red]   - {violations.functions_over_max_lines} functions exceed "
            f"{thresholds.max_lines_per_function} lines[/red]"
        )
    if violations.functions_over_complexity:
        console.print(
            f"[red]   - {violations.functions_over_complexity} functions exceed complexity "
            f"threshold of {thresholds.complexity_threshold}[/red]"
        )


def render_plain(snapshot: Snapshot, thresholds: ThresholdConfig, width: int = 100) -> str:
    """The text report and verdict as plain text, for callers without a terminal."""
    console = Console(record=True, file=io.StringIO(), width=width, color_system=None)
    render_text(console, snapshot)
    render_verdict(console, threshold_violations(snapshot, thresholds), thresholds)
    return console.export_text()
