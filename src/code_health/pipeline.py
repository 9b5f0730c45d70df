"""One analysis cycle: run the adapters in parallel, then aggregate."""

from __future__ import annotations

import concurrent.futures
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from .aggregate import aggregate
from .config import AnalysisConfig
from .ignore import IgnoreRules, build_ignore_rules
from .logging_config import get_logger
from .paths import clean_reports_dir, get_reports_dir, write_json, write_report
from .reports import ReportSet, ToolReport
from .runners import AdapterContext, ToolAdapter, default_adapters
from .snapshot import Snapshot

logger = get_logger(__name__)


@dataclass(frozen=True)
class AnalysisResult:
    """A snapshot together with the reports it was built from."""

    snapshot: Snapshot
    reports: ReportSet
    root: Path


def run_adapters(
    adapters: Sequence[ToolAdapter], context: AdapterContext
) -> list[ToolReport]:
    """Run every adapter concurrently and wait for all of them."""
    with concurrent.futures.ThreadPoolExecutor(
        max_workers=max(1, len(adapters)), thread_name_prefix="code-health-tool"
    ) as executor:
        futures = [executor.submit(adapter.run, context) for adapter in adapters]
        return [future.result() for future in futures]


class AnalysisCycle:
    """Runs analysis cycles for one root.

    :meth:`collect` runs the tools and persists their reports, :meth:`aggregate`
    turns them into a result; :meth:`run` does both.  The refresh loop calls
    the two halves separately so it can report which phase is active.
    """

    def __init__(
        self,
        config: AnalysisConfig,
        adapters: Optional[Sequence[ToolAdapter]] = None,
        reports_dir: Optional[Path] = None,
    ) -> None:
        self.config = config
        self.root = config.root
        self.adapters = list(adapters) if adapters is not None else default_adapters()
        self.reports_dir = reports_dir if reports_dir is not None else get_reports_dir(self.root)
        self.ignore: IgnoreRules = build_ignore_rules(
            self.root, config.exclude, config.use_gitignore
        )

    def context(self) -> AdapterContext:
        return AdapterContext(
            root=self.root,
            ignore=self.ignore,
            reports_dir=self.reports_dir,
            include=tuple(self.config.include),
            thresholds=self.config.thresholds,
            timeout=self.config.tool_timeout_seconds,
        )

    def collect(self) -> ReportSet:
        clean_reports_dir(self.reports_dir)
        logger.info("Analyzing %s with %d tools", self.root, len(self.adapters))
        reports = run_adapters(self.adapters, self.context())
        for report in reports:
            try:
                write_report(self.reports_dir, report)
            except OSError as e:
                logger.warning("Could not persist %s report: %s", report.kind.value, e)
        return ReportSet.from_reports(reports)

    def aggregate(self, reports: ReportSet) -> AnalysisResult:
        snapshot = aggregate(reports, self.root)
        try:
            write_json(self.reports_dir, "aggregated", snapshot.to_dict())
            write_json(self.reports_dir, "meta", snapshot.meta())
        except OSError as e:
            logger.warning("Could not persist snapshot: %s", e)
        return AnalysisResult(snapshot=snapshot, reports=reports, root=self.root)

    def run(self) -> AnalysisResult:
        started = time.monotonic()
        result = self.aggregate(self.collect())
        logger.info("Analysis complete in %.1fs", time.monotonic() - started)
        return result


def run_analysis(
    config: AnalysisConfig,
    adapters: Optional[Sequence[ToolAdapter]] = None,
    reports_dir: Optional[Path] = None,
) -> AnalysisResult:
    """Run one full cycle and persist its reports.

    Adapters never raise, so this only fails on programming errors; a tool
    that cannot run shows up as a failed report and empty slices.
    """
    return AnalysisCycle(config, adapters=adapters, reports_dir=reports_dir).run()
