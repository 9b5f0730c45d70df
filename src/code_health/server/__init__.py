"""Live dashboard server for code-health."""

from __future__ import annotations


def _check_deps() -> None:
    """Raise a clear error if the server dependencies are missing."""
    missing = []
    try:
        import starlette  # noqa: F401
    except ImportError:
        missing.append("starlette")
    try:
        import uvicorn  # noqa: F401
    except ImportError:
        missing.append("uvicorn")
    try:
        import watchfiles  # noqa: F401
    except ImportError:
        missing.append("watchfiles")

    if missing:
        raise ImportError(
            f"Missing server dependencies: {', '.join(missing)}. "
            "Reinstall with: pip install code-health"
        )
