"""ESLint adapter: size and complexity findings."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from ..exceptions import ToolExecutionError, ToolOutputError
from ..logging_config import get_logger
from ..reports import LintReport, ToolKind
from .base import AdapterContext, ToolAdapter, probe_version, run_tool

logger = get_logger(__name__)

DEFAULT_PATTERNS = ("**/*.{js,jsx,ts,tsx,mjs,cjs}",)

FLAT_CONFIG_FILES = ("eslint.config.js", "eslint.config.mjs", "eslint.config.cjs")
LEGACY_CONFIG_FILES = (".eslintrc.js", ".eslintrc.cjs", ".eslintrc.json")

# ESLint exits 1 when it found problems and 2 on configuration or fatal errors.
_FINDINGS_EXIT = (0, 1)
_CONFIG_ERROR_EXIT = 2


def find_project_config(root: Path) -> Optional[Path]:
    """Project flat config, if any.  Legacy ``.eslintrc`` files are ignored."""
    for name in FLAT_CONFIG_FILES:
        path = root / name
        if path.exists():
            return path
    for name in LEGACY_CONFIG_FILES:
        if (root / name).exists():
            logger.info("Found legacy ESLint config %s, using built-in rules instead", name)
            break
    return None


def fallback_rules(context: AdapterContext) -> dict[str, list]:
    t = context.thresholds
    return {
        "max-lines": [
            "warn",
            {"max": t.max_lines, "skipBlankLines": True, "skipComments": True},
        ],
        "max-lines-per-function": [
            "warn",
            {"max": t.max_lines_per_function, "skipBlankLines": True, "skipComments": True},
        ],
        "complexity": ["warn", {"max": t.complexity_threshold}],
    }


def build_command(context: AdapterContext, project_config: Optional[Path]) -> list[str]:
    cmd = ["npx", "eslint", "--format", "json", "--no-error-on-unmatched-pattern"]
    if project_config is not None:
        cmd += ["--config", str(project_config)]
    else:
        cmd.append("--no-config-lookup")
        for rule, options in fallback_rules(context).items():
            cmd += ["--rule", json.dumps({rule: options})]
    for pattern in context.ignore.tool_patterns:
        cmd += ["--ignore-pattern", pattern]
    cmd += list(context.include or DEFAULT_PATTERNS)
    return cmd


def parse_output(stdout: str) -> LintReport:
    try:
        data = json.loads(stdout)
    except json.JSONDecodeError as e:
        raise ToolOutputError(ToolKind.LINT.value, f"invalid JSON: {e}")
    return LintReport.from_dict(data)


class EslintAdapter(ToolAdapter):
    kind = ToolKind.LINT

    def collect(self, context: AdapterContext) -> tuple[LintReport, str]:
        project_config = find_project_config(context.root)
        if project_config is not None:
            logger.info("Using project ESLint config: %s", project_config.name)

        result = run_tool(
            self.name,
            build_command(context, project_config),
            context.root,
            context.timeout,
            ok_returncodes=None,
        )
        if result.returncode == _CONFIG_ERROR_EXIT and project_config is not None:
            logger.info("Project ESLint config failed to load, retrying with built-in rules")
            result = run_tool(
                self.name,
                build_command(context, None),
                context.root,
                context.timeout,
                ok_returncodes=None,
            )
        if result.returncode not in _FINDINGS_EXIT:
            raise ToolExecutionError(self.name, result.returncode, result.stderr)

        report = parse_output(result.stdout)
        kept = tuple(
            r for r in report.results if not context.ignore.is_ignored(context.relative(r.file_path))
        )
        version = probe_version(self.name, ["npx", "eslint", "--version"], context.root)
        return LintReport(results=kept), version

    def summarize(self, payload: LintReport) -> str:
        errors = sum(r.error_count for r in payload.results)
        warnings = sum(r.warning_count for r in payload.results)
        return f"{errors} errors, {warnings} warnings"
