"""CLI entry point; registers all subcommands."""

import typer

from ._common import console  # noqa: F401

app = typer.Typer(
    name="code-health",
    help="code-health - static-analysis dashboard for JS/TS codebases",
    add_completion=False,
    rich_markup_mode="rich",
)


def main() -> None:
    app()


# Import subcommands to register them
from .dashboard import main as _main_callback  # noqa: F401, E402
from .analyze import analyze as _analyze  # noqa: F401, E402
from .print_cmd import print_report as _print_report  # noqa: F401, E402
