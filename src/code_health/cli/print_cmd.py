"""``code-health print``: findings on stdout, exit 1 on threshold violations."""

import json
from typing import Optional

import click
import typer

from ..exceptions import CodeHealthError
from ..logging_config import setup_logging
from ..pipeline import run_analysis
from . import app
from ._common import console, resolve_config
from ._format import render_text, render_verdict, threshold_violations


@app.command("print")
def print_report(
    ctx: typer.Context,
    output_format: Optional[str] = typer.Option(
        None,
        "--format",
        help="Output format: text | json",
        click_type=click.Choice(["text", "json"], case_sensitive=False),
    ),
) -> None:
    """
    Run the analyzers once and print the findings.

    Exits with status 1 when a file, function or complexity limit is exceeded.

    [bold cyan]Examples:[/bold cyan]

      code-health print

      code-health --max-lines 300 print --format json
    """
    config = resolve_config(
        ctx, output_format=output_format.lower() if output_format else None
    )
    logger = setup_logging(config)

    try:
        if config.output_format == "json":
            result = run_analysis(config)
        else:
            with console.status("[cyan]Running analysis..."):
                result = run_analysis(config)
    except CodeHealthError as e:
        logger.error(f"{e.__class__.__name__}: {e}")
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Analysis interrupted[/yellow]")
        raise typer.Exit(130)

    snapshot = result.snapshot
    violations = threshold_violations(snapshot, config.thresholds)

    if config.output_format == "json":
        print(json.dumps(snapshot.to_dict(), indent=2))
    else:
        render_text(console, snapshot)
        render_verdict(console, violations, config.thresholds)

    if violations.exceeded:
        raise typer.Exit(1)
