"""Tests for the line-count adapter and its built-in counter."""

import json
import subprocess
from unittest.mock import patch

import pytest

from code_health.exceptions import ToolOutputError
from code_health.ignore import build_ignore_rules
from code_health.runners import AdapterContext, ClocAdapter
from code_health.runners.cloc import count_lines, count_tree, parse_cloc_json


@pytest.fixture
def project(tmp_path):
    root = tmp_path / "proj"
    (root / "src").mkdir(parents=True)
    (root / "node_modules" / "lib").mkdir(parents=True)
    (root / "src" / "app.ts").write_text("// entry\nconst a = 1;\n\nexport default a;\n")
    (root / "src" / "util.js").write_text("/* helpers */\n * more\nfunction f() {}\n")
    (root / "src" / "notes.txt").write_text("not source\n")
    (root / "node_modules" / "lib" / "index.js").write_text("module.exports = 1;\n")
    (root / "vite.config.ts").write_text("export default {}\n")
    return root


@pytest.fixture
def context(project, tmp_path):
    return AdapterContext(
        root=project,
        ignore=build_ignore_rules(project, use_gitignore=False),
        reports_dir=tmp_path / "reports",
    )


class TestCountLines:
    def test_categories(self):
        assert count_lines("// c\ncode();\n\n  \n# also comment\n") == (2, 2, 1)

    def test_empty(self):
        assert count_lines("") == (0, 0, 0)


class TestBuiltinCounter:
    def test_counts_known_extensions_only(self, context):
        report = count_tree(context)
        assert [f.file for f in report.files] == ["src/app.ts", "src/util.js"]

    def test_line_breakdown(self, context):
        app = count_tree(context).files[0]
        assert (app.blank, app.comment, app.code, app.loc) == (1, 1, 2, 4)
        assert app.language == "TypeScript"

    def test_used_when_cloc_missing(self, context):
        with patch("code_health.runners.cloc.which", return_value=None):
            report = ClocAdapter().run(context)
        assert not report.failed
        assert report.version == "builtin"
        assert len(report.payload.files) == 2


CLOC_OUTPUT = json.dumps(
    {
        "header": {"cloc_version": "1.98"},
        "./src/app.ts": {"blank": 1, "comment": 1, "code": 2, "language": "TypeScript"},
        "./node_modules/lib/index.js": {"blank": 0, "comment": 0, "code": 1, "language": "JavaScript"},
        "SUM": {"blank": 1, "comment": 1, "code": 3, "nFiles": 2},
    }
)


class TestClocJson:
    def test_parse_drops_header_sum_and_ignored(self, context):
        report = parse_cloc_json(CLOC_OUTPUT, context)
        assert [f.file for f in report.files] == ["src/app.ts"]
        assert report.files[0].loc == 4

    def test_rejects_non_object(self, context):
        with pytest.raises(ToolOutputError):
            parse_cloc_json("[1, 2]", context)

    def test_adapter_runs_cloc(self, context):
        def fake_run(cmd, **kwargs):
            if "--version" in cmd:
                return subprocess.CompletedProcess(cmd, 0, stdout="1.98\n", stderr="")
            return subprocess.CompletedProcess(cmd, 0, stdout=CLOC_OUTPUT, stderr="")

        with patch("code_health.runners.cloc.which", return_value="/usr/bin/cloc"), patch(
            "code_health.runners.base.subprocess.run", side_effect=fake_run
        ) as run:
            report = ClocAdapter().run(context)

        assert not report.failed
        assert report.version == "1.98"
        cmd = run.call_args_list[0].args[0]
        assert cmd[:4] == ["cloc", "--by-file", "--json", "--quiet"]
        excluded = next(arg for arg in cmd if arg.startswith("--exclude-dir="))
        assert "node_modules" in excluded.split("=", 1)[1].split(",")
