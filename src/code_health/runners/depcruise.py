"""dependency-cruiser adapter: module graph and circular dependencies."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

from ..exceptions import ToolExecutionError, ToolOutputError
from ..ignore import glob_to_regex
from ..logging_config import get_logger
from ..reports import DependencyGraphReport, ToolKind
from .base import AdapterContext, ToolAdapter, probe_version, run_tool

logger = get_logger(__name__)


def find_tsconfig(start: Path) -> Optional[Path]:
    """Nearest ``tsconfig.json`` at or above *start*."""
    current = start.resolve()
    while True:
        candidate = current / "tsconfig.json"
        if candidate.exists():
            return candidate
        if current.parent == current:
            return None
        current = current.parent


def ignore_regex(patterns: list[str]) -> str:
    """One alternation of the ignore globs, usable as a JavaScript regex."""
    return "|".join(f"(?:^{glob_to_regex(p).pattern})" for p in patterns)


def build_config(context: AdapterContext, tsconfig: Optional[Path]) -> dict[str, Any]:
    options: dict[str, Any] = {
        "tsPreCompilationDeps": True,
        "preserveSymlinks": False,
        "reporterOptions": {"json": {"collapsePattern": "node_modules/[^/]+"}},
    }
    pattern = ignore_regex(context.ignore.tool_patterns)
    if pattern:
        options["doNotFollow"] = {"path": pattern}
        options["exclude"] = {"path": pattern}
    if tsconfig is not None:
        options["tsConfig"] = {"fileName": str(tsconfig)}
    return {
        "forbidden": [
            {
                "name": "no-circular",
                "severity": "warn",
                "comment": "Circular dependencies",
                "from": {},
                "to": {"circular": True},
            },
            {
                "name": "no-orphans",
                "severity": "info",
                "comment": "Orphan modules",
                "from": {"orphan": True},
                "to": {},
            },
        ],
        "options": options,
    }


def parse_output(stdout: str) -> DependencyGraphReport:
    try:
        data = json.loads(stdout)
    except json.JSONDecodeError as e:
        raise ToolOutputError(ToolKind.DEPENDENCY_GRAPH.value, f"invalid JSON: {e}")
    return DependencyGraphReport.from_dict(data)


class DepcruiseAdapter(ToolAdapter):
    kind = ToolKind.DEPENDENCY_GRAPH

    def collect(self, context: AdapterContext) -> tuple[DependencyGraphReport, str]:
        tsconfig = find_tsconfig(context.root)
        if tsconfig is not None:
            logger.debug("Using %s for module resolution", tsconfig)

        config_path = context.scratch_path(self.kind, "config.json")
        config_path.write_text(json.dumps(build_config(context, tsconfig), indent=2), encoding="utf-8")
        cmd = [
            "npx",
            "depcruise",
            "--config",
            str(config_path),
            "--output-type",
            "json",
            *(context.include or (".",)),
        ]
        try:
            # depcruise exits with the number of error-severity violations.
            result = run_tool(self.name, cmd, context.root, context.timeout, ok_returncodes=None)
        finally:
            config_path.unlink(missing_ok=True)

        if not result.stdout.strip():
            raise ToolExecutionError(self.name, result.returncode, result.stderr)

        report = parse_output(result.stdout)
        version = probe_version(self.name, ["npx", "depcruise", "--version"], context.root)
        return report, version

    def summarize(self, payload: DependencyGraphReport) -> str:
        cycles = sum(1 for v in payload.violations if v.is_circular)
        return f"{payload.total_cruised} modules, {cycles} circular dependencies"
