"""``code-health analyze``: one-shot analysis served as a static report."""

import typer

from . import app
from ._common import resolve_config
from .dashboard import serve


@app.command()
def analyze(ctx: typer.Context) -> None:
    """
    Analyze once, print a summary, then serve the result without watching.

    [bold cyan]Examples:[/bold cyan]

      code-health analyze

      code-health --port 9000 --open analyze
    """
    serve(resolve_config(ctx), watch=False)
