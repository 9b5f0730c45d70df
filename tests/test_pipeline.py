"""Tests for one analysis cycle with stub adapters."""

import json
import threading

import pytest
from conftest import dead_code_report, line_count_report

from code_health.config import AnalysisConfig
from code_health.exceptions import ToolNotFoundError
from code_health.paths import read_json, read_report
from code_health.pipeline import AnalysisCycle, run_adapters, run_analysis
from code_health.reports import ToolKind
from code_health.runners import AdapterContext, ToolAdapter


class StubAdapter(ToolAdapter):
    """Returns a canned payload, or raises the given error."""

    def __init__(self, report=None, kind=None, error=None, barrier=None):
        self.kind = report.kind if report is not None else kind
        self._payload = report.payload if report is not None else None
        self._error = error
        self._barrier = barrier

    def collect(self, context: AdapterContext):
        if self._barrier is not None:
            self._barrier.wait(timeout=5)
        if self._error is not None:
            raise self._error
        return self._payload, "1.0.0"


@pytest.fixture
def config(tmp_path):
    project = tmp_path / "proj"
    project.mkdir()
    return AnalysisConfig(cwd=str(project), use_gitignore=False)


class TestAnalysisCycle:
    def test_run_aggregates_and_persists(self, config, tmp_path):
        reports_dir = tmp_path / "reports"
        adapters = [
            StubAdapter(line_count_report({"src/app.ts": 120})),
            StubAdapter(dead_code_report(files=["src/old.ts"])),
        ]
        result = run_analysis(config, adapters=adapters, reports_dir=reports_dir)

        assert [m.file for m in result.snapshot.largest_files] == ["src/app.ts"]
        assert result.snapshot.dead_code[0].file == "src/old.ts"
        assert read_report(reports_dir, ToolKind.LINE_COUNT).payload.files[0].code == 120
        aggregated = read_json(reports_dir, "aggregated")
        assert aggregated["largestFiles"][0]["loc"] == 120
        meta = read_json(reports_dir, "meta")
        assert meta["reports"] == {"eslint": False, "depcruise": False, "knip": True, "cloc": True}

    def test_failing_adapter_does_not_stop_the_cycle(self, config, tmp_path):
        adapters = [
            StubAdapter(kind=ToolKind.LINT, error=ToolNotFoundError("eslint", "npx")),
            StubAdapter(line_count_report({"a.ts": 3})),
        ]
        result = run_analysis(config, adapters=adapters, reports_dir=tmp_path / "reports")
        tools = result.snapshot.to_dict()["tools"]
        assert tools["eslint"]["failed"] is True
        assert result.snapshot.largest_files[0].loc == 3

    def test_unexpected_exception_contained(self, config, tmp_path):
        adapters = [StubAdapter(kind=ToolKind.DEAD_CODE, error=KeyError("boom"))]
        result = run_analysis(config, adapters=adapters, reports_dir=tmp_path / "reports")
        report = result.reports.get(ToolKind.DEAD_CODE)
        assert report.failed
        assert "KeyError" in report.error

    def test_reports_dir_wiped_each_cycle(self, config, tmp_path):
        reports_dir = tmp_path / "reports"
        reports_dir.mkdir()
        (reports_dir / "stale.json").write_text(json.dumps({}))
        AnalysisCycle(config, adapters=[], reports_dir=reports_dir).run()
        assert not (reports_dir / "stale.json").exists()
        assert (reports_dir / "aggregated.json").exists()

    def test_context_carries_config(self, config, tmp_path):
        cycle = AnalysisCycle(config, adapters=[], reports_dir=tmp_path / "reports")
        context = cycle.context()
        assert context.root == config.root
        assert context.thresholds == config.thresholds
        assert context.timeout == config.tool_timeout_seconds


class TestRunAdapters:
    def test_adapters_run_concurrently(self, config, tmp_path):
        # Both adapters must be inside collect() at once to pass the barrier.
        barrier = threading.Barrier(2)
        adapters = [
            StubAdapter(line_count_report({"a.ts": 1}), barrier=barrier),
            StubAdapter(dead_code_report(), barrier=barrier),
        ]
        cycle = AnalysisCycle(config, adapters=adapters, reports_dir=tmp_path / "reports")
        reports = run_adapters(adapters, cycle.context())
        assert [r.failed for r in reports] == [False, False]
