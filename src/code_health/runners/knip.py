"""knip adapter: unused files and exports."""

from __future__ import annotations

import json
import re
from typing import Any, Optional

from ..exceptions import ToolExecutionError
from ..logging_config import get_logger
from ..reports import DeadCodeReport, ToolKind
from .base import AdapterContext, ToolAdapter, probe_version, run_tool

logger = get_logger(__name__)

ENTRY_PATTERNS = ("src/index.{ts,js,tsx,jsx}", "app.{ts,js,tsx,jsx}", "server.{ts,js,tsx,jsx}")
PROJECT_PATTERNS = ("**/*.{ts,js,tsx,jsx}",)

_SECTIONS = {
    "Unused files": "files",
    "Unused exports": "exports",
    "Duplicate exports": "duplicates",
}
# "helper  function  src/utils.ts:12:3" (knip's compact table rows)
_TABLE_EXPORT = re.compile(r"^(?P<symbol>\S+)\s+(?:\S+\s+)?(?P<file>\S+?):(?P<line>\d+)(?::\d+)?$")


def build_config(context: AdapterContext) -> dict[str, Any]:
    return {
        "entry": list(ENTRY_PATTERNS),
        "project": list(context.include or PROJECT_PATTERNS),
        "ignore": context.ignore.tool_patterns,
        "ignoreDependencies": [],
        "ignoreMembers": [],
        "ignoreWorkspaces": [],
    }


def normalize_json(data: Any) -> dict[str, Any]:
    """Fold knip's JSON reporter shapes into ``{"files", "exports"}``.

    knip 5 reports ``{"files": [...], "issues": [{"file", "exports": [...]}]}``;
    older releases listed ``exports`` at the top level.
    """
    if not isinstance(data, dict):
        return {"files": [], "exports": []}
    exports = list(data.get("exports") or [])
    for issue in data.get("issues") or []:
        if not isinstance(issue, dict) or not isinstance(issue.get("file"), str):
            continue
        file = issue["file"]
        for key in ("exports", "types"):
            for item in issue.get(key) or []:
                if isinstance(item, dict) and item.get("name"):
                    exports.append({"file": file, "symbol": item["name"], "line": item.get("line")})
    return {"files": list(data.get("files") or []), "exports": exports}


def parse_text_output(output: str) -> dict[str, Any]:
    """Recover unused files and exports from knip's human-readable output."""
    result: dict[str, list] = {"files": [], "exports": []}
    section: Optional[str] = None
    for raw in output.splitlines():
        line = raw.strip()
        matched = next((key for title, key in _SECTIONS.items() if title in line), None)
        if matched is not None:
            section = matched
            continue
        if not line or section is None:
            continue
        # Drop a trailing "(note)" the way knip annotates entries.
        line = re.sub(r"\s+\([^)]*\)$", "", line)
        if section == "files":
            result["files"].append({"file": line})
        elif section == "exports":
            table = _TABLE_EXPORT.match(line)
            if table:
                result["exports"].append(
                    {
                        "file": table.group("file"),
                        "symbol": table.group("symbol"),
                        "line": int(table.group("line")),
                    }
                )
                continue
            file, _, symbol = line.partition(":")
            if file.strip() and symbol.strip():
                result["exports"].append({"file": file.strip(), "symbol": symbol.strip()})
    return result


def parse_output(stdout: str, stderr: str = "") -> DeadCodeReport:
    try:
        data = normalize_json(json.loads(stdout))
    except json.JSONDecodeError:
        logger.warning("Failed to parse knip JSON output, using text fallback")
        data = parse_text_output(stdout + "\n" + stderr)
    return DeadCodeReport.from_dict(data)


class KnipAdapter(ToolAdapter):
    kind = ToolKind.DEAD_CODE

    def collect(self, context: AdapterContext) -> tuple[DeadCodeReport, str]:
        config_path = context.scratch_path(self.kind, "config.json")
        config_path.write_text(json.dumps(build_config(context), indent=2), encoding="utf-8")
        cmd = ["npx", "knip", "--config", str(config_path), "--reporter", "json", "--no-progress"]
        try:
            # knip exits non-zero whenever it finds issues.
            result = run_tool(self.name, cmd, context.root, context.timeout, ok_returncodes=None)
        finally:
            config_path.unlink(missing_ok=True)

        if not result.stdout.strip() and result.returncode > 1:
            raise ToolExecutionError(self.name, result.returncode, result.stderr)

        report = parse_output(result.stdout, result.stderr)
        version = probe_version(self.name, ["npx", "knip", "--version"], context.root)
        return report, version

    def summarize(self, payload: DeadCodeReport) -> str:
        return f"{len(payload.files)} unused files, {len(payload.exports)} unused exports"
