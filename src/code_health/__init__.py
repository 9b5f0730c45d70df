"""
code-health - static-analysis dashboard for JavaScript/TypeScript codebases.

Runs ESLint, dependency-cruiser, knip and cloc over a project root, merges
their reports into a single snapshot keyed by root-relative file paths, and
serves it to a live browser dashboard that refreshes as files change.
"""

__version__ = "0.3.0"

from .config import AnalysisConfig, ThresholdConfig, load_config
from .pipeline import AnalysisResult, run_analysis
from .snapshot import Snapshot

__all__ = [
    "run_analysis",  # One-shot analysis
    "load_config",
    "AnalysisConfig",
    "ThresholdConfig",
    "AnalysisResult",
    "Snapshot",
]
