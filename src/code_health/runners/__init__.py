"""Adapters for the external analysis tools."""

from .base import AdapterContext, ToolAdapter, run_tool
from .cloc import ClocAdapter
from .depcruise import DepcruiseAdapter
from .eslint import EslintAdapter
from .knip import KnipAdapter


def default_adapters() -> list[ToolAdapter]:
    return [EslintAdapter(), DepcruiseAdapter(), KnipAdapter(), ClocAdapter()]


__all__ = [
    "AdapterContext",
    "ToolAdapter",
    "run_tool",
    "EslintAdapter",
    "DepcruiseAdapter",
    "KnipAdapter",
    "ClocAdapter",
    "default_adapters",
]
