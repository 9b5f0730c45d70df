"""Global options and ``code-health dashboard`` (the default command)."""

from pathlib import Path
from typing import Optional

import typer

from ..config import AnalysisConfig
from ..exceptions import CodeHealthError
from ..logging_config import setup_logging
from . import app
from ._common import console, resolve_config, split_patterns


def serve(config: AnalysisConfig, watch: bool) -> None:
    """Check server dependencies, then run the server until interrupted."""
    try:
        from ..server import _check_deps

        _check_deps()
    except ImportError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)

    from ..server.lifecycle import launch_server

    logger = setup_logging(config)
    try:
        launch_server(config, console, watch=watch)
    except CodeHealthError as e:
        logger.error(f"{e.__class__.__name__}: {e}")
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        raise typer.Exit(130)


@app.callback(invoke_without_command=True, no_args_is_help=False)
def main(
    ctx: typer.Context,
    cwd: Optional[Path] = typer.Option(
        None,
        "--cwd",
        help="Root of the analysis (default: current directory)",
        exists=True,
        file_okay=False,
        dir_okay=True,
        readable=True,
    ),
    include: Optional[str] = typer.Option(
        None, "--include", help="Include patterns (comma-separated)"
    ),
    exclude: Optional[str] = typer.Option(
        None, "--exclude", help="Exclude patterns (comma-separated)"
    ),
    no_gitignore: bool = typer.Option(
        False, "--no-gitignore", help="Ignore .gitignore entirely"
    ),
    max_lines: Optional[int] = typer.Option(
        None, "--max-lines", help="Max lines per file (default: 400)", min=1
    ),
    max_lines_per_function: Optional[int] = typer.Option(
        None, "--max-lines-per-function", help="Max lines per function (default: 80)", min=1
    ),
    complexity_threshold: Optional[int] = typer.Option(
        None, "--complexity-threshold", help="Complexity threshold (default: 15)", min=1
    ),
    port: Optional[int] = typer.Option(
        None, "--port", help="Dashboard port (default: 43110)", min=1, max=65535
    ),
    open_browser: bool = typer.Option(
        False, "--open", help="Open the browser when the server starts"
    ),
    config: Optional[Path] = typer.Option(
        None,
        "-c",
        "--config",
        help="Configuration file (TOML)",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
    log_file: Optional[Path] = typer.Option(
        None, "--log-file", help="Also write DEBUG logs to this file", dir_okay=False
    ),
    version: bool = typer.Option(False, "--version", help="Show version and exit"),
):
    """
    Analyze a JavaScript/TypeScript codebase and serve a live health dashboard.

    Runs ESLint, dependency-cruiser, knip and cloc, merges their findings,
    and re-runs them whenever files change.

    [bold cyan]Examples:[/bold cyan]

      code-health

      code-health --cwd ./web --open

      code-health print --format json

      code-health --max-lines 300 print
    """
    overrides = {
        "cwd": str(cwd) if cwd is not None else None,
        "include": split_patterns(include),
        "exclude": split_patterns(exclude),
        "use_gitignore": False if no_gitignore else None,
        "max_lines": max_lines,
        "max_lines_per_function": max_lines_per_function,
        "complexity_threshold": complexity_threshold,
        "port": port,
        "open_browser": True if open_browser else None,
        "verbose": verbose or None,
        "log_file": str(log_file) if log_file is not None else None,
    }
    ctx.ensure_object(dict)
    ctx.obj["overrides"] = {k: v for k, v in overrides.items() if v is not None}
    ctx.obj["config"] = config

    if version:
        from .. import __version__

        console.print(f"[bold cyan]code-health[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit(0)

    if ctx.invoked_subcommand is not None:
        return

    serve(resolve_config(ctx), watch=True)


@app.command()
def dashboard(
    ctx: typer.Context,
    watch: bool = typer.Option(
        True, "--watch/--no-watch", help="Re-analyze when files change"
    ),
) -> None:
    """Run the analyzers and serve the live browser dashboard."""
    serve(resolve_config(ctx), watch=watch)
