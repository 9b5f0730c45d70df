"""Tests for report aggregation: idempotence, degradation, end-to-end."""

from dataclasses import replace
from unittest.mock import patch

import pytest
from conftest import (
    ROOT,
    dead_code_report,
    graph_report,
    line_count_report,
    lint_report,
    max_lines_message,
)

from code_health.aggregate import aggregate, known_files, tool_statuses
from code_health.reports import ModuleRecord, ReportSet, ToolKind, ToolReport


def _without_timestamp(snapshot):
    data = snapshot.to_dict()
    data.pop("generatedAt")
    return data


class TestEndToEnd:
    def test_documented_scenario(self, scenario_reports):
        snapshot = aggregate(scenario_reports, ROOT)
        data = snapshot.to_dict()

        assert data["largestFiles"] == [
            {"file": "src/app.ts", "loc": 450, "code": 450, "comment": 0, "blank": 0}
        ]
        assert data["maxLineOffenders"] == [
            {"file": "src/app.ts", "kind": "file", "value": 450, "limit": 400}
        ]
        assert data["cycles"] == [{"paths": ["src/a.ts", "src/b.ts"]}]
        assert data["deadCode"] == [{"file": "src/unused.ts", "kind": "export", "symbol": "helper"}]
        assert data["complexFunctions"] == []
        assert data["dataQuality"] == {"ambiguousMatches": 0}

    def test_tool_statuses(self, scenario_reports):
        snapshot = aggregate(scenario_reports, ROOT)
        tools = snapshot.to_dict()["tools"]
        assert set(tools) == {"eslint", "depcruise", "knip", "cloc"}
        assert tools["cloc"] == {"present": True, "failed": False, "version": "1.98"}

    def test_every_reference_is_canonical(self, scenario_reports):
        snapshot = aggregate(scenario_reports, ROOT)
        assert snapshot.referenced_files() == {
            "src/app.ts",
            "src/a.ts",
            "src/b.ts",
            "src/unused.ts",
        }


class TestIdempotence:
    def test_same_reports_same_snapshot(self, scenario_reports):
        first = aggregate(scenario_reports, ROOT)
        second = aggregate(scenario_reports, ROOT)
        assert _without_timestamp(first) == _without_timestamp(second)
        assert replace(first, generated_at="") == replace(second, generated_at="")


class TestDegradation:
    @pytest.mark.parametrize(
        "missing, emptied",
        [
            (ToolKind.DEPENDENCY_GRAPH, {"cycles"}),
            (ToolKind.DEAD_CODE, {"deadCode"}),
            (ToolKind.LINT, {"complexFunctions", "maxLineOffenders"}),
            (ToolKind.LINE_COUNT, {"largestFiles", "composition"}),
        ],
    )
    def test_absent_report_empties_only_its_slices(self, scenario_reports, missing, emptied):
        full = aggregate(scenario_reports, ROOT).to_dict()
        partial_reports = ReportSet.from_reports(r for r in scenario_reports if r.kind != missing)
        partial = aggregate(partial_reports, ROOT).to_dict()

        for key in ("largestFiles", "complexFunctions", "maxLineOffenders", "cycles", "deadCode"):
            if key in emptied:
                assert partial[key] == []
            else:
                assert partial[key] == full[key]
        if "composition" in emptied:
            assert "composition" not in partial
        assert partial["tools"][missing.value]["present"] is False

    def test_failed_report_counts_as_absent(self, scenario_reports):
        reports = replace(
            scenario_reports,
            dependency_graph=ToolReport.failure(ToolKind.DEPENDENCY_GRAPH, "depcruise crashed"),
        )
        data = aggregate(reports, ROOT).to_dict()
        assert data["cycles"] == []
        assert data["tools"]["depcruise"]["failed"] is True
        assert data["largestFiles"]

    def test_no_reports_at_all(self):
        snapshot = aggregate(ReportSet(), ROOT)
        assert snapshot.issue_count == 0
        assert snapshot.largest_files == ()
        assert snapshot.composition is None

    def test_extractor_crash_is_contained(self, scenario_reports):
        with patch("code_health.aggregate.extract_cycles", side_effect=RuntimeError("boom")):
            snapshot = aggregate(scenario_reports, ROOT)
        assert snapshot.cycles == ()
        assert snapshot.largest_files


class TestAmbiguity:
    def test_ambiguous_reference_is_counted_and_kept_canonical(self):
        reports = ReportSet.from_reports(
            [
                line_count_report({"a/index.ts": 10, "b/index.ts": 10, "c/index.ts": 10}),
                dead_code_report(exports=[("index.ts", "setup")]),
            ]
        )
        snapshot = aggregate(reports, ROOT)
        assert snapshot.ambiguous_matches == 1
        assert snapshot.dead_code[0].file == "index.ts"


class TestCrossToolPaths:
    def test_truncated_references_land_on_counted_file(self):
        reports = ReportSet.from_reports(
            [
                line_count_report({"src/utils/helper.ts": 500, "src/app.ts": 20}),
                lint_report({"utils/helper.ts": [max_lines_message(500, 400)]}),
                dead_code_report(files=["utils/helper.ts"]),
            ]
        )
        data = aggregate(reports, ROOT).to_dict()
        assert data["deadCode"] == [{"file": "src/utils/helper.ts", "kind": "file"}]
        assert data["maxLineOffenders"][0]["file"] == "src/utils/helper.ts"
        assert data["dataQuality"] == {"ambiguousMatches": 0}

    def test_equally_good_counted_files_are_ambiguous(self):
        reports = ReportSet.from_reports(
            [
                line_count_report({"a/foo.ts": 500, "b/foo.ts": 500}),
                lint_report({"foo.ts": [max_lines_message(500, 400)]}),
            ]
        )
        snapshot = aggregate(reports, ROOT)
        assert snapshot.ambiguous_matches == 1
        assert snapshot.max_line_offenders[0].file == "foo.ts"


class TestHelpers:
    def test_known_files_are_counted_files(self, scenario_reports):
        assert known_files(scenario_reports, ROOT) == ["src/app.ts"]

    def test_known_files_never_include_dead_code_paths(self):
        reports = ReportSet.from_reports(
            [
                line_count_report({"src/utils/helper.ts": 10}),
                dead_code_report(files=["utils/helper.ts"]),
            ]
        )
        assert known_files(reports, ROOT) == ["src/utils/helper.ts"]

    def test_known_files_without_line_count(self):
        reports = ReportSet.from_reports(
            [
                lint_report(
                    {
                        f"{ROOT}/src/app.ts": [],
                        "utils/helper.ts": [],
                        "/elsewhere/lib.ts": [],
                    }
                ),
                graph_report(modules=[ModuleRecord(source="src/a.ts")]),
                dead_code_report(files=["helper.ts"]),
            ]
        )
        assert known_files(reports, ROOT) == [f"{ROOT}/src/app.ts", "src/a.ts"]

    def test_statuses_for_missing_tools(self):
        statuses = {s.name: s for s in tool_statuses(ReportSet.from_reports([graph_report()]))}
        assert statuses["depcruise"].present and not statuses["depcruise"].failed
        assert not statuses["eslint"].present
        assert statuses["eslint"].version == "N/A"
