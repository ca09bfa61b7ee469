"""Tests for the command line interface."""

from __future__ import annotations

import json
import logging

import pytest
import structlog
from typer.testing import CliRunner

from monorelease import __version__
from monorelease.cli.main import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def _restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()


def _version_of(path):
    return json.loads(path.read_text())["version"]


class TestCli:
    """Tests for the typer app."""

    def test_tool_version(self):
        """--tool-version prints the package version."""
        result = runner.invoke(app, ["--tool-version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_version_dry_run(self, workspace):
        """version previews without writing."""
        result = runner.invoke(app, ["version", "api", "--release-as", "minor", "--path", str(workspace)])

        assert result.exit_code == 0, result.output
        assert "1.3.0" in result.output
        assert "Dry Run Preview" in result.output
        assert _version_of(workspace / "apps/api/package.json") == "1.2.0"

    def test_version_execute(self, workspace):
        """version --execute writes the version file."""
        result = runner.invoke(
            app, ["version", "api", "--release-as", "minor", "--execute", "--path", str(workspace)]
        )

        assert result.exit_code == 0, result.output
        assert _version_of(workspace / "apps/api/package.json") == "1.3.0"

    def test_version_needs_targets(self, workspace):
        """Without projects or --all the command fails."""
        result = runner.invoke(app, ["version", "--path", str(workspace)])

        assert result.exit_code == 1

    def test_version_failure_exit_code(self, workspace):
        """Unresolvable projects make the command fail."""
        result = runner.invoke(app, ["version", "api", "--path", str(workspace)])

        assert result.exit_code == 1

    def test_unknown_release_as(self, workspace):
        """An unknown bump type fails the command without a traceback."""
        result = runner.invoke(app, ["release", "--all", "--release-as", "premajor", "--path", str(workspace)])

        assert result.exit_code == 1
        assert not isinstance(result.exception, ValueError)

    def test_release_all_dry_run(self, workspace):
        """release --all previews every project."""
        result = runner.invoke(app, ["release", "--all", "--release-as", "patch", "--path", str(workspace)])

        assert result.exit_code == 0, result.output
        assert "3 succeeded, 0 skipped, 0 failed" in result.output
        assert _version_of(workspace / "libs/core/package.json") == "1.0.0"

    def test_release_execute_with_exclude(self, workspace):
        """--exclude keeps a project out of an executed release."""
        result = runner.invoke(
            app,
            ["release", "--all", "--exclude", "web", "--version", "2.0.0", "--execute", "--path", str(workspace)],
        )

        assert result.exit_code == 0, result.output
        assert _version_of(workspace / "apps/api/package.json") == "2.0.0"
        assert _version_of(workspace / "apps/web/package.json") == "1.1.0"

    def test_changelog_write(self, workspace):
        """changelog --execute writes the project's changelog."""
        result = runner.invoke(
            app, ["changelog", "api", "--version", "1.3.0", "--execute", "--path", str(workspace)]
        )

        assert result.exit_code == 0, result.output
        assert (workspace / "apps/api/CHANGELOG.md").read_text().startswith("## 1.3.0")

    def test_invalid_config(self, tmp_path):
        """Configuration errors exit with status 1."""
        (tmp_path / "pyproject.toml").write_text('[tool.monorelease]\nrelationship = "loose"\n')

        result = runner.invoke(app, ["version", "--all", "--path", str(tmp_path)])

        assert result.exit_code == 1
