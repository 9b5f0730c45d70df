"""
Logging for code-health.

Everything is routed through the ``code_health`` logger. Console output goes
to stderr through rich so that ``code-health print --format json`` and the
MCP stdio transport keep stdout to themselves. A log file, when configured,
receives DEBUG records whatever the console verbosity is.
"""

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from .config import AnalysisConfig

ROOT_LOGGER = "code_health"

LEVELS = {
    "quiet": logging.ERROR,
    "normal": logging.WARNING,
    "verbose": logging.DEBUG,
}

# Third-party loggers that would otherwise report every file event or request
NOISY_LOGGERS = ("watchfiles", "uvicorn.access", "uvicorn.error")

FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(config: "AnalysisConfig", console: Optional[Console] = None) -> logging.Logger:
    """
    Attach handlers to the ``code_health`` logger for one run.

    Handlers from a previous call are replaced, so the CLI and the MCP server
    can reconfigure freely. Records do not propagate to the root logger.

    Args:
        config: Supplies ``verbosity`` and the optional ``log_file``
        console: Console for the rich handler, stderr by default

    Returns:
        The configured ``code_health`` logger
    """
    verbose = config.verbosity == "verbose"
    level = LEVELS[config.verbosity]

    rich_handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=True,
        tracebacks_show_locals=verbose,
        markup=False,
        show_time=True,
        show_path=verbose,
    )
    rich_handler.setLevel(level)
    handlers: list[logging.Handler] = [rich_handler]

    if config.log_file:
        path = Path(config.log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        handlers.append(file_handler)

    logger = logging.getLogger(ROOT_LOGGER)
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if config.log_file else level)
    logger.propagate = False

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO if verbose else logging.WARNING)

    logger.debug("Logging configured: verbosity=%s log_file=%s", config.verbosity, config.log_file)
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return ``code_health`` or one of its children; bare names are namespaced."""
    if name is None:
        return logging.getLogger(ROOT_LOGGER)
    if not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
