"""CLI tests for Tripline -- check and identifiers via Click's CliRunner."""

from __future__ import annotations

import pytest
from click.testing import CliRunner

from tripline.cli import cli

PLUGIN = ["--plugin", "tests.plugin_sample"]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def runner():
    """Create a Click test runner."""
    return CliRunner()


def _write(runner_dir, name: str, text: str) -> str:
    path = f"{runner_dir}/{name}"
    with open(path, "w", encoding="utf-8") as fh:
        fh.write(text)
    return path


# ---------------------------------------------------------------------------
# tripline check
# ---------------------------------------------------------------------------

class TestCheck:
    def test_valid_script(self, runner, tmp_path):
        path = _write(tmp_path, "ok.tl", "?cli.ready\n@cli.start\n!cli.say(cooldown=5s)\n")
        result = runner.invoke(cli, [*PLUGIN, "check", path])
        assert result.exit_code == 0, result.output
        assert "@cli.start" in result.output
        assert "!cli.say" in result.output
        assert "cooldown 5s" in result.output
        assert "OK 1 trigger(s), 0 action(s), 0 requirement(s)" in result.output

    def test_requirement_only_script(self, runner, tmp_path):
        path = _write(tmp_path, "reqs.tl", "?cli.ready\n?cli.ready\n")
        result = runner.invoke(cli, [*PLUGIN, "check", path])
        assert result.exit_code == 0, result.output
        assert "0 trigger(s), 0 action(s), 2 requirement(s)" in result.output

    def test_compile_error(self, runner, tmp_path):
        path = _write(tmp_path, "bad.tl", "@cli.start\n!nope\n")
        result = runner.invoke(cli, [*PLUGIN, "check", path])
        assert result.exit_code == 1
        assert "Error:" in result.output
        assert 'No action with identifier "nope" found on line 2/2' in result.output

    def test_parse_error(self, runner, tmp_path):
        path = _write(tmp_path, "junk.tl", "@cli.start\njunk\n")
        result = runner.invoke(cli, [*PLUGIN, "check", path])
        assert result.exit_code == 1
        assert "on line 2/2" in result.output

    def test_quiet(self, runner, tmp_path):
        path = _write(tmp_path, "ok.tl", "@cli.start\n!cli.say\n")
        result = runner.invoke(cli, [*PLUGIN, "check", "--quiet", path])
        assert result.exit_code == 0
        assert result.output == ""

    def test_missing_file(self, runner):
        result = runner.invoke(cli, ["check", "does-not-exist.tl"])
        assert result.exit_code == 2

    def test_bad_plugin(self, runner, tmp_path):
        path = _write(tmp_path, "ok.tl", "@cli.start\n")
        result = runner.invoke(cli, ["--plugin", "tests.no_such_plugin", "check", path])
        assert result.exit_code == 1
        assert "Cannot import plugin 'tests.no_such_plugin'" in result.output


# ---------------------------------------------------------------------------
# tripline identifiers
# ---------------------------------------------------------------------------

class TestIdentifiers:
    def test_lists_all_kinds(self, runner):
        result = runner.invoke(cli, [*PLUGIN, "identifiers"])
        assert result.exit_code == 0, result.output
        assert "cli.say" in result.output
        assert "cli.ready" in result.output
        assert "cli.start" in result.output
        assert "Fired on startup" in result.output

    def test_filter_by_kind(self, runner):
        result = runner.invoke(cli, [*PLUGIN, "identifiers", "--kind", "trigger"])
        assert result.exit_code == 0
        assert "cli.start" in result.output
        assert "cli.say" not in result.output

    def test_invalid_kind(self, runner):
        result = runner.invoke(cli, ["identifiers", "--kind", "event"])
        assert result.exit_code == 2
