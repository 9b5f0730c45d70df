"""MCP server exposing code-health analysis as tools.

Runs via STDIO transport. Entry point: `code-health-mcp` console script.
Tool results are plain text; logging goes to stderr so stdout carries only
the protocol.

Usage:
    {"mcpServers": {"code-health": {"command": "code-health-mcp"}}}
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import threading
from typing import Any, Optional

from mcp.server.fastmcp import FastMCP

from ..cli._common import split_patterns
from ..cli._format import render_plain
from ..config import AnalysisConfig, load_config
from ..exceptions import CodeHealthError
from ..logging_config import setup_logging
from ..pipeline import run_analysis
from ..server.lifecycle import BackgroundDashboard

logger = logging.getLogger(__name__)

mcp = FastMCP("code-health")

NO_DASHBOARD = "No dashboard server is currently running."

# At most one dashboard per MCP server process
_dashboard: Optional[BackgroundDashboard] = None
_dashboard_lock = threading.Lock()


def _config(
    cwd: Optional[str],
    include: Optional[str] = None,
    exclude: Optional[str] = None,
    **overrides: Any,
) -> AnalysisConfig:
    """Tool arguments layered over the usual config files and environment."""
    return load_config(
        cwd=cwd or os.getcwd(),
        include=split_patterns(include),
        exclude=split_patterns(exclude),
        **overrides,
    )


# ---------------------------------------------------------------------------
# Analysis tools
# ---------------------------------------------------------------------------


@mcp.tool()
async def code_health_analyze(
    cwd: Optional[str] = None,
    include: Optional[str] = None,
    exclude: Optional[str] = None,
    max_lines: Optional[int] = None,
    max_lines_per_function: Optional[int] = None,
    complexity_threshold: Optional[int] = None,
) -> str:
    """Run a full code health analysis on a project and return the report.

    Args:
        cwd: Project directory to analyze. Defaults to the server's working directory.
        include: Comma-separated glob patterns to include.
        exclude: Comma-separated glob patterns to exclude.
        max_lines: Maximum lines per file (default 400).
        max_lines_per_function: Maximum lines per function (default 80).
        complexity_threshold: Complexity ceiling per function (default 15).
    """
    try:
        config = _config(
            cwd,
            include,
            exclude,
            max_lines=max_lines,
            max_lines_per_function=max_lines_per_function,
            complexity_threshold=complexity_threshold,
        )
        logger.info("Running analysis on %s", config.root)
        result = await asyncio.to_thread(run_analysis, config)
    except CodeHealthError as e:
        return f"Analysis failed: {e}"
    return render_plain(result.snapshot, config.thresholds)


@mcp.tool()
async def code_health_summary(cwd: Optional[str] = None, format: str = "text") -> str:
    """Get a quick summary of code health metrics.

    Args:
        cwd: Project directory to analyze. Defaults to the server's working directory.
        format: Output format - "text" or "json".
    """
    if format not in ("text", "json"):
        return f"Unsupported format '{format}': use text or json"
    try:
        config = _config(cwd)
        logger.info("Summarizing %s", config.root)
        result = await asyncio.to_thread(run_analysis, config)
    except CodeHealthError as e:
        return f"Analysis failed: {e}"
    if format == "json":
        return json.dumps(result.snapshot.to_dict(), indent=2)
    return render_plain(result.snapshot, config.thresholds)


# ---------------------------------------------------------------------------
# Dashboard tools
# ---------------------------------------------------------------------------


def _replace_dashboard(dashboard: BackgroundDashboard) -> str:
    global _dashboard
    with _dashboard_lock:
        if _dashboard is not None:
            _dashboard.stop()
            _dashboard = None
        url = dashboard.start()
        _dashboard = dashboard
        return url


def _stop_dashboard() -> bool:
    global _dashboard
    with _dashboard_lock:
        dashboard, _dashboard = _dashboard, None
    return dashboard is not None and dashboard.stop()


@mcp.tool()
async def code_health_dashboard(
    cwd: Optional[str] = None,
    port: Optional[int] = None,
    include: Optional[str] = None,
    exclude: Optional[str] = None,
) -> str:
    """Start the live code health dashboard server for a project.

    A dashboard this server started earlier is stopped first.

    Args:
        cwd: Project directory to analyze. Defaults to the server's working directory.
        port: Preferred port (default CODE_HEALTH_PORT or 43110). The next free port is used if taken.
        include: Comma-separated glob patterns to include.
        exclude: Comma-separated glob patterns to exclude.
    """
    try:
        config = _config(cwd, include, exclude, port=port)
        dashboard = BackgroundDashboard(config)
        url = await asyncio.to_thread(_replace_dashboard, dashboard)
    except (CodeHealthError, RuntimeError, OSError) as e:
        logger.warning("Dashboard failed to start: %s", e)
        return f"Failed to start dashboard server: {e}"

    if dashboard.reused:
        return f"A dashboard for this project is already running at:\n   {url}"
    return (
        "Dashboard server started.\n\n"
        f"Code health dashboard:\n   {url}\n\n"
        "The dashboard refreshes automatically as files change."
    )


@mcp.tool()
async def code_health_stop_dashboard() -> str:
    """Stop the dashboard server started by code_health_dashboard."""
    stopped = await asyncio.to_thread(_stop_dashboard)
    if not stopped:
        return NO_DASHBOARD
    return "Dashboard server stopped."


def main() -> None:
    """Run the code-health MCP server via STDIO transport."""
    try:
        config = load_config()
    except CodeHealthError as e:
        setup_logging(AnalysisConfig())
        logger.warning("Ignoring invalid configuration: %s", e)
    else:
        setup_logging(config)
    try:
        mcp.run(transport="stdio")
    finally:
        _stop_dashboard()


if __name__ == "__main__":
    main()
