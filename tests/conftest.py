"""Shared fixtures."""

from __future__ import annotations

import json
import shutil
import subprocess
from pathlib import Path

import pytest

from monorelease.vcs.git import Commit


def _make_commits(*messages: str) -> list[Commit]:
    """Commits with distinct, stable hashes, in the given order."""
    return [Commit(sha=f"{index:07d}" + "f" * 33, message=message) for index, message in enumerate(messages, 1)]


def _git(path: Path, *args: str) -> str:
    result = subprocess.run(["git", *args], cwd=path, capture_output=True, text=True, check=True)
    return result.stdout.strip()


def _commit_file(path: Path, relative: str, content: str, message: str) -> None:
    target = path / relative
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content)
    _git(path, "add", relative)
    _git(path, "commit", "-m", message)


@pytest.fixture
def temp_git_repo(tmp_path: Path) -> Path:
    """An empty git repository with a committer identity."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    _git(tmp_path, "init", "-q", "-b", "main")
    _git(tmp_path, "config", "user.email", "test@example.com")
    _git(tmp_path, "config", "user.name", "Test")
    _git(tmp_path, "config", "commit.gpgsign", "false")
    _git(tmp_path, "config", "tag.gpgsign", "false")
    return tmp_path


WORKSPACE_PYPROJECT = """\
[project]
name = "workspace"
version = "0.0.0"

[tool.monorelease]
relationship = "independent"
version_files = ["package.json"]

[tool.monorelease.changelog]
include_date = false

[tool.monorelease.projects.core]
root = "libs/core"

[tool.monorelease.projects.api]
root = "apps/api"
dependencies = ["core"]

[tool.monorelease.projects.web]
root = "apps/web"
dependencies = ["api"]
"""


def write_package_json(root: Path, name: str, version: str | None) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    data: dict[str, str] = {"name": name}
    if version is not None:
        data["version"] = version
    path = root / "package.json"
    path.write_text(json.dumps(data, indent=2) + "\n")
    return path


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Three-project workspace (core <- api <- web) without git."""
    (tmp_path / "pyproject.toml").write_text(WORKSPACE_PYPROJECT)
    write_package_json(tmp_path / "libs/core", "core", "1.0.0")
    write_package_json(tmp_path / "apps/api", "api", "1.2.0")
    write_package_json(tmp_path / "apps/web", "web", "1.1.0")
    return tmp_path


@pytest.fixture
def git_workspace(temp_git_repo: Path) -> Path:
    """The three-project workspace committed and tagged at its current versions."""
    root = temp_git_repo
    (root / "pyproject.toml").write_text(WORKSPACE_PYPROJECT)
    write_package_json(root / "libs/core", "core", "1.0.0")
    write_package_json(root / "apps/api", "api", "1.2.0")
    write_package_json(root / "apps/web", "web", "1.1.0")
    _git(root, "add", ".")
    _git(root, "commit", "-m", "chore: initial workspace")
    _git(root, "tag", "core@1.0.0")
    _git(root, "tag", "api@1.2.0")
    _git(root, "tag", "web@1.1.0")
    return root


@pytest.fixture
def make_commits():
    return _make_commits


@pytest.fixture
def run_git():
    return _git


@pytest.fixture
def commit_file():
    return _commit_file
