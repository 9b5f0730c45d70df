"""CLI tests: option handling and exit codes, with analysis and serving patched out."""

import json
import os
from unittest.mock import patch

import pytest
from conftest import ROOT
from typer.testing import CliRunner

from code_health import __version__
from code_health.aggregate import aggregate
from code_health.cli import app
from code_health.pipeline import AnalysisResult
from code_health.reports import ReportSet

RUN_ANALYSIS = "code_health.cli.print_cmd.run_analysis"
LAUNCH = "code_health.server.lifecycle.launch_server"

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for key in list(os.environ):
        if key.startswith("CODE_HEALTH_"):
            monkeypatch.delenv(key)


@pytest.fixture
def project(tmp_path):
    path = tmp_path / "proj"
    path.mkdir()
    return path


def result_for(reports):
    return AnalysisResult(snapshot=aggregate(reports, ROOT), reports=reports, root=ROOT)


class TestVersion:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestPrint:
    def test_json_output_and_violation_exit(self, project, scenario_reports):
        with patch(RUN_ANALYSIS, return_value=result_for(scenario_reports)):
            result = runner.invoke(app, ["--cwd", str(project), "print", "--format", "json"])
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["maxLineOffenders"][0]["value"] == 450

    def test_raised_limit_passes(self, project, scenario_reports):
        with patch(RUN_ANALYSIS, return_value=result_for(scenario_reports)):
            result = runner.invoke(
                app, ["--cwd", str(project), "--max-lines", "500", "print", "--format", "json"]
            )
        assert result.exit_code == 0

    def test_thresholds_reach_analysis(self, project):
        with patch(RUN_ANALYSIS, return_value=result_for(ReportSet())) as run:
            runner.invoke(
                app, ["--cwd", str(project), "--complexity-threshold", "9", "print"]
            )
        config = run.call_args.args[0]
        assert config.thresholds.complexity_threshold == 9
        assert config.output_format == "text"

    def test_text_output(self, project):
        with patch(RUN_ANALYSIS, return_value=result_for(ReportSet())):
            result = runner.invoke(app, ["--cwd", str(project), "print"])
        assert result.exit_code == 0
        assert "CODE HEALTH REPORT" in result.output
        assert "All code health checks passed!" in result.output

    def test_bad_config_file(self, project):
        bad = project / "bad.toml"
        bad.write_text("max_lines = [")
        result = runner.invoke(app, ["--cwd", str(project), "-c", str(bad), "print"])
        assert result.exit_code == 1
        assert "Configuration error" in result.output


class TestServeCommands:
    def test_default_command_serves_with_watch(self, project):
        with patch(LAUNCH) as launch:
            result = runner.invoke(app, ["--cwd", str(project), "--port", "9000"])
        assert result.exit_code == 0
        config = launch.call_args.args[0]
        assert config.port == 9000
        assert launch.call_args.kwargs["watch"] is True

    def test_dashboard_no_watch(self, project):
        with patch(LAUNCH) as launch:
            runner.invoke(app, ["--cwd", str(project), "dashboard", "--no-watch"])
        assert launch.call_args.kwargs["watch"] is False

    def test_analyze_serves_static_snapshot(self, project):
        with patch(LAUNCH) as launch:
            result = runner.invoke(app, ["--cwd", str(project), "--open", "analyze"])
        assert result.exit_code == 0
        assert launch.call_args.args[0].open_browser is True
        assert launch.call_args.kwargs["watch"] is False

    def test_exclude_patterns_split(self, project):
        with patch(LAUNCH) as launch:
            runner.invoke(app, ["--cwd", str(project), "--exclude", "legacy/**, *.gen.ts"])
        assert launch.call_args.args[0].exclude == ["legacy/**", "*.gen.ts"]

    def test_log_file_option(self, project, tmp_path):
        log_file = tmp_path / "logs" / "ch.log"
        with patch(LAUNCH) as launch:
            runner.invoke(app, ["--cwd", str(project), "--log-file", str(log_file)])
        assert launch.call_args.args[0].log_file == str(log_file)
        assert log_file.exists()
