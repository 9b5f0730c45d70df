"""Line-count adapter: cloc when installed, a built-in counter otherwise."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Iterator

from ..exceptions import ToolOutputError
from ..extractors import LANGUAGE_BY_EXTENSION
from ..logging_config import get_logger
from ..reports import FileLineCount, LineCountReport, ToolKind
from .base import AdapterContext, ToolAdapter, probe_version, run_tool, which

logger = get_logger(__name__)

BUILTIN_VERSION = "builtin"

COMMENT_PREFIXES = ("//", "#", "/*", "*", "<!--")


def count_lines(content: str) -> tuple[int, int, int]:
    """``(blank, comment, code)`` by line prefix."""
    blank = comment = code = 0
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped:
            blank += 1
        elif stripped.startswith(COMMENT_PREFIXES):
            comment += 1
        else:
            code += 1
    return blank, comment, code


def iter_source_files(context: AdapterContext) -> Iterator[tuple[Path, str]]:
    """Yield ``(absolute, relative)`` for counted files, pruning ignored dirs."""
    root = context.root
    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        prefix = "" if rel_dir == "." else rel_dir + "/"
        dirnames[:] = sorted(d for d in dirnames if not context.ignore.is_ignored(prefix + d))
        for name in sorted(filenames):
            if os.path.splitext(name)[1].lower() not in LANGUAGE_BY_EXTENSION:
                continue
            relative = prefix + name
            if context.ignore.is_ignored(relative):
                continue
            yield Path(dirpath) / name, relative


def count_tree(context: AdapterContext) -> LineCountReport:
    files = []
    for path, relative in iter_source_files(context):
        try:
            content = path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.debug("Skipping unreadable %s: %s", relative, e)
            continue
        blank, comment, code = count_lines(content)
        files.append(
            FileLineCount(
                file=relative,
                language=LANGUAGE_BY_EXTENSION[os.path.splitext(relative)[1].lower()],
                blank=blank,
                comment=comment,
                code=code,
            )
        )
    return LineCountReport(files=tuple(files))


def parse_cloc_json(stdout: str, context: AdapterContext) -> LineCountReport:
    """Convert ``cloc --by-file --json`` output, dropping ignored files."""
    try:
        data: Any = json.loads(stdout) if stdout.strip() else {}
    except json.JSONDecodeError as e:
        raise ToolOutputError(ToolKind.LINE_COUNT.value, f"invalid JSON: {e}")
    if not isinstance(data, dict):
        raise ToolOutputError(ToolKind.LINE_COUNT.value, "expected an object keyed by file")
    files = []
    for path, entry in data.items():
        if path in ("header", "SUM"):
            continue
        relative = context.relative(path)
        if relative.startswith("./"):
            relative = relative[2:]
        if context.ignore.is_ignored(relative):
            continue
        if not isinstance(entry, dict):
            raise ToolOutputError(ToolKind.LINE_COUNT.value, f"bad entry for {path}")
        files.append(
            {
                "file": relative,
                "language": entry.get("language") or "Unknown",
                "blank": entry.get("blank", 0),
                "comment": entry.get("comment", 0),
                "code": entry.get("code", 0),
            }
        )
    return LineCountReport.from_dict({"files": files})


class ClocAdapter(ToolAdapter):
    kind = ToolKind.LINE_COUNT

    def collect(self, context: AdapterContext) -> tuple[LineCountReport, str]:
        if which("cloc") is None:
            logger.info("cloc not installed, counting lines with the built-in counter")
            return count_tree(context), BUILTIN_VERSION

        exclude_dirs = sorted(
            {
                p[3:-3] if p.startswith("**/") else p[:-3]
                for p in context.ignore.tool_patterns
                if p.endswith("/**")
            }
        )
        # cloc takes bare directory names only.
        exclude_dirs = [d for d in exclude_dirs if d and "/" not in d and "*" not in d]
        cmd = ["cloc", "--by-file", "--json", "--quiet"]
        if exclude_dirs:
            cmd.append(f"--exclude-dir={','.join(exclude_dirs)}")
        cmd.append(".")
        result = run_tool(self.name, cmd, context.root, context.timeout)
        report = parse_cloc_json(result.stdout, context)
        return report, probe_version(self.name, ["cloc", "--version"], context.root)

    def summarize(self, payload: LineCountReport) -> str:
        summary = payload.summary
        return f"{summary['filesCount']} files, {summary['totalCode']} lines of code"
