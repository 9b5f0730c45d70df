"""Shared CLI helpers."""

from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console

from ..config import AnalysisConfig, load_config
from ..exceptions import ConfigurationError

console = Console()


def split_patterns(value: Optional[str]) -> Optional[list[str]]:
    """Comma-separated option value to a pattern list (None when unset)."""
    if value is None:
        return None
    return [p.strip() for p in value.split(",") if p.strip()]


def resolve_config(ctx: typer.Context, **overrides: Any) -> AnalysisConfig:
    """Build the config from the global options plus command-level *overrides*.

    Configuration errors are printed and turned into exit code 1.
    """
    obj = ctx.obj or {}
    merged = dict(obj.get("overrides", {}))
    merged.update({k: v for k, v in overrides.items() if v is not None})
    config_file: Optional[Path] = obj.get("config")
    try:
        return load_config(config_file=config_file, **merged)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)
