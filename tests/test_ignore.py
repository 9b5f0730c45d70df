"""Tests for ignore rules."""

import pytest

from code_health.ignore import IgnoreRules, build_ignore_rules, glob_to_regex, read_gitignore


class TestGlobToRegex:
    @pytest.mark.parametrize(
        "pattern, path",
        [
            ("**/node_modules/**", "node_modules/react/index.js"),
            ("**/node_modules/**", "packages/web/node_modules/x.js"),
            ("*.log", "logs/server.log"),
            ("/build", "build/main.js"),
            ("src/*.ts", "src/a.ts"),
            ("dist/", "dist/bundle.js"),
            ("file?.ts", "src/file1.ts"),
            ("[ab].ts", "a.ts"),
        ],
    )
    def test_matches(self, pattern, path):
        assert glob_to_regex(pattern).match(path)

    @pytest.mark.parametrize(
        "pattern, path",
        [
            ("/build", "src/build/main.js"),
            ("src/*.ts", "src/nested/a.ts"),
            ("*.log", "logs/server.log.txt"),
            ("[!ab].ts", "a.ts"),
        ],
    )
    def test_does_not_match(self, pattern, path):
        assert not glob_to_regex(pattern).match(path)


class TestIgnoreRules:
    def test_built_ins(self, tmp_path):
        rules = build_ignore_rules(tmp_path, use_gitignore=False)
        assert rules.is_ignored("node_modules/lodash/index.js")
        assert rules.is_ignored("dist/app.js")
        assert rules.is_ignored("vite.config.ts")
        assert rules.is_ignored("src/__generated__/schema.ts")
        assert not rules.is_ignored("src/app.ts")

    def test_negation_reincludes(self):
        rules = IgnoreRules(patterns=("*.ts", "!keep.ts"))
        assert rules.is_ignored("src/drop.ts")
        assert not rules.is_ignored("src/keep.ts")

    def test_comments_and_blanks_skipped(self):
        rules = IgnoreRules(patterns=("# comment", "", "*.md"))
        assert rules.is_ignored("README.md")
        assert rules.tool_patterns == ["*.md"]

    def test_leading_dot_slash(self):
        rules = IgnoreRules(patterns=("src/legacy/**",))
        assert rules.is_ignored("./src/legacy/old.js")

    def test_windows_separators(self):
        rules = IgnoreRules(patterns=("src/legacy/**",))
        assert rules.is_ignored("src\\legacy\\old.js")


class TestGitignore:
    def test_read(self, tmp_path):
        (tmp_path / ".gitignore").write_text("# deps\nvendor/\n\n*.snap\n")
        assert read_gitignore(tmp_path) == ["vendor/", "*.snap"]

    def test_missing(self, tmp_path):
        assert read_gitignore(tmp_path) == []

    def test_merged_with_excludes(self, tmp_path):
        (tmp_path / ".gitignore").write_text("vendor/\n")
        rules = build_ignore_rules(tmp_path, exclude=["legacy/**"])
        assert rules.is_ignored("vendor/lib.js")
        assert rules.is_ignored("legacy/a.js")
        assert not rules.is_ignored("src/a.js")

    def test_gitignore_can_be_skipped(self, tmp_path):
        (tmp_path / ".gitignore").write_text("vendor/\n")
        rules = build_ignore_rules(tmp_path, use_gitignore=False)
        assert not rules.is_ignored("vendor/lib.js")
