"""Configuration loading and management for code-health.

Configuration sources are merged in priority order:
    1. Defaults (defined in AnalysisConfig)
    2. Global config (~/.code-health.toml)
    3. Project config (<cwd>/code-health.toml)
    4. Explicit config file
    5. Environment variables (CODE_HEALTH_* prefix)
    6. CLI overrides (passed as kwargs)

Example:
    >>> config = load_config(port=9000, max_lines=500)
    >>> config.port
    9000
    >>> config.thresholds.max_lines
    500
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Literal, Optional, Union, get_type_hints

from .exceptions import ConfigurationError, InvalidConfigError, InvalidPathError

Verbosity = Literal["quiet", "normal", "verbose"]
OutputFormat = Literal["text", "json"]

DEFAULT_PORT = 43110
ENV_PREFIX = "CODE_HEALTH_"


@dataclass(frozen=True)
class ThresholdConfig:
    """Limits handed to the lint adapter and checked by ``code-health print``.

    Attributes:
        max_lines: Maximum non-blank, non-comment lines per file
        max_lines_per_function: Maximum lines per function body
        complexity_threshold: Complexity ceiling per function
    """

    max_lines: int = 400
    max_lines_per_function: int = 80
    complexity_threshold: int = 15

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if not isinstance(value, int) or value < 1:
                raise InvalidConfigError(f.name, value, "must be a positive integer")


@dataclass(frozen=True)
class AnalysisConfig:
    """Configuration for one analysis root.

    Attributes:
        Analysis scope:
            cwd: Root of the analysis
            include: Glob patterns handed to the tools (empty = tool defaults)
            exclude: Extra ignore patterns appended to the built-in list
            use_gitignore: Merge the root's .gitignore into the ignore rules

        Tool execution:
            tool_timeout_seconds: Wall-clock budget for each tool invocation
            debounce_seconds: Quiet window collapsing bursts of file events

        Serving:
            host: Interface the dashboard binds to
            port: Preferred dashboard port (next free one is used if taken)
            open_browser: Open the dashboard in a browser once it is up

        Output control:
            output_format: ``text`` or ``json`` for ``code-health print``
            verbosity: Logging verbosity level
            log_file: Also append DEBUG-level logs to this file
    """

    cwd: str = "."
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)
    use_gitignore: bool = True

    tool_timeout_seconds: float = 300.0
    debounce_seconds: float = 0.75

    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    open_browser: bool = False

    output_format: OutputFormat = "text"
    verbosity: Verbosity = "normal"
    log_file: Optional[str] = None

    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not 1 <= self.port <= 65535:
            raise InvalidConfigError("port", self.port, "must be between 1 and 65535")
        if self.tool_timeout_seconds <= 0:
            raise InvalidConfigError(
                "tool_timeout_seconds", self.tool_timeout_seconds, "must be positive"
            )
        if self.debounce_seconds < 0:
            raise InvalidConfigError(
                "debounce_seconds", self.debounce_seconds, "must be non-negative"
            )
        if self.output_format not in ("text", "json"):
            raise InvalidConfigError("output_format", self.output_format, "must be text or json")
        if self.verbosity not in ("quiet", "normal", "verbose"):
            raise InvalidConfigError(
                "verbosity", self.verbosity, "must be quiet, normal or verbose"
            )

    @property
    def root(self) -> Path:
        """Absolute analysis root."""
        return Path(self.cwd).expanduser().resolve()


_THRESHOLD_KEYS = {f.name for f in fields(ThresholdConfig)}


def load_config(config_file: Optional[Path] = None, **overrides: Any) -> AnalysisConfig:
    """Load configuration with auto-discovery and merging.

    Threshold fields (``max_lines``, ``max_lines_per_function``,
    ``complexity_threshold``) may be passed flat, as the CLI does, or
    nested under ``[thresholds]`` in TOML.

    Raises:
        ConfigurationError: If a config file is invalid or missing, or a
            value fails validation
    """
    overrides = {k: v for k, v in overrides.items() if v is not None}
    merged: dict[str, Any] = {}

    global_config = Path.home() / ".code-health.toml"
    if global_config.exists():
        merged.update(_load_toml_checked(global_config, "global config"))

    project_root = Path(overrides.get("cwd", ".")).expanduser()
    project_config = project_root / "code-health.toml"
    if project_config.exists():
        merged.update(_load_toml_checked(project_config, "project config"))

    if config_file is not None:
        if not config_file.exists():
            raise InvalidPathError(config_file, "config file not found")
        merged.update(_load_toml_checked(config_file, "config file"))

    merged.update(_load_env_vars())

    if "verbose" in overrides:
        if overrides["verbose"]:
            overrides["verbosity"] = "verbose"
        del overrides["verbose"]
    if "quiet" in overrides:
        if overrides["quiet"]:
            overrides["verbosity"] = "quiet"
        del overrides["quiet"]

    merged.update(overrides)

    threshold_values: dict[str, Any] = {}
    nested = merged.pop("thresholds", None)
    if isinstance(nested, ThresholdConfig):
        threshold_values.update(
            {name: getattr(nested, name) for name in _THRESHOLD_KEYS}
        )
    elif isinstance(nested, dict):
        threshold_values.update(nested)
    elif nested is not None:
        raise InvalidConfigError("thresholds", nested, "must be a table")
    for key in _THRESHOLD_KEYS:
        if key in merged:
            threshold_values[key] = merged.pop(key)

    try:
        merged["thresholds"] = ThresholdConfig(**threshold_values)
    except TypeError as e:
        raise ConfigurationError(f"Invalid [thresholds] config: {e}")

    try:
        return AnalysisConfig(**merged)
    except TypeError as e:
        raise ConfigurationError(f"Invalid configuration: {e}")


def _load_toml_checked(path: Path, label: str) -> dict:
    try:
        return _load_toml_file(path)
    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(f"Invalid {label} '{path}': {e}")


def _load_env_vars() -> dict[str, Any]:
    """Load configuration from CODE_HEALTH_* environment variables.

    Supported environment variables:
        CODE_HEALTH_PORT: int
        CODE_HEALTH_HOST: str
        CODE_HEALTH_OPEN_BROWSER: bool (true/false/1/0)
        CODE_HEALTH_USE_GITIGNORE: bool
        CODE_HEALTH_TOOL_TIMEOUT_SECONDS: float
        CODE_HEALTH_DEBOUNCE_SECONDS: float
        CODE_HEALTH_OUTPUT_FORMAT: text/json
        CODE_HEALTH_VERBOSITY: quiet/normal/verbose
        CODE_HEALTH_LOG_FILE: str
        CODE_HEALTH_MAX_LINES: int
        CODE_HEALTH_MAX_LINES_PER_FUNCTION: int
        CODE_HEALTH_COMPLEXITY_THRESHOLD: int
    """
    type_hints = dict(get_type_hints(AnalysisConfig))
    type_hints.update(get_type_hints(ThresholdConfig))

    result: dict[str, Any] = {}
    for field_name, type_hint in type_hints.items():
        if field_name in ("thresholds", "cwd"):
            continue
        env_key = f"{ENV_PREFIX}{field_name.upper()}"
        env_value = os.environ.get(env_key)
        if env_value is None:
            continue
        try:
            parsed = _parse_env_value(env_value, type_hint)
        except ValueError as e:
            raise InvalidConfigError(env_key, env_value, str(e))
        if parsed is not None:
            result[field_name] = parsed

    return result


def _parse_env_value(value: str, type_hint: Any) -> Any:
    """Parse an environment variable string to the annotated type.

    Returns None for types that cannot be expressed as a single string
    (lists), raises ValueError for unparseable values.
    """
    origin = getattr(type_hint, "__origin__", None)

    if origin is list or type_hint is list:
        return None

    if origin is Union:
        args = [a for a in type_hint.__args__ if a is not type(None)]
        if len(args) == 1:
            return _parse_env_value(value, args[0])
        return None

    if type_hint is bool:
        lower = value.lower()
        if lower in ("true", "1", "yes", "on"):
            return True
        if lower in ("false", "0", "no", "off"):
            return False
        raise ValueError(f"expected true/false, got '{value}'")

    if type_hint is int:
        return int(value)

    if type_hint is float:
        return float(value)

    if type_hint is str or origin is Literal:
        return value

    return None


def _load_toml_file(path: Path) -> dict:
    """Load TOML file and return parsed dict."""
    try:
        import tomllib
    except ModuleNotFoundError:
        import tomli as tomllib  # type: ignore

    with open(path, "rb") as f:
        return tomllib.load(f)
