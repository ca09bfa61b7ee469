"""Shared setup for CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from monorelease.config.loader import find_pyproject_toml, load_config
from monorelease.exceptions import GitOperationError, MonoReleaseError
from monorelease.release import CommandBuildRunner, ReleaseOrchestrator
from monorelease.vcs import GitRepository

if TYPE_CHECKING:
    from rich.console import Console

logger = structlog.get_logger(__name__)


def build_orchestrator(path: str | None, err_console: Console) -> ReleaseOrchestrator:
    """Load the workspace around ``path`` (default cwd).

    Exits with status 1 when the configuration cannot be loaded.
    """
    start = Path(path) if path else Path.cwd()

    try:
        pyproject = find_pyproject_toml(start)
        config = load_config(pyproject)
    except MonoReleaseError as e:
        err_console.print(f"[red]Error loading config:[/] {e}")
        raise SystemExit(1) from e

    workspace_root = pyproject.parent

    try:
        repo: GitRepository | None = GitRepository(workspace_root)
    except GitOperationError as e:
        # Versioning from explicit input still works outside a repository.
        logger.warning("git_repository_unavailable", path=str(workspace_root), error=str(e))
        repo = None

    build_runner = CommandBuildRunner(config.build_command, workspace_root) if config.build_command else None

    return ReleaseOrchestrator(
        workspace_root,
        config,
        repo=repo,
        build_runner=build_runner,
    )


def resolve_targets(
    orchestrator: ReleaseOrchestrator,
    projects: list[str] | None,
    all_projects: bool,
    err_console: Console,
) -> list[str]:
    """Project names named on the command line, or all of them with ``--all``."""
    if all_projects:
        return orchestrator.config.project_names
    if not projects:
        err_console.print("[red]Error:[/] Name at least one project or pass [cyan]--all[/].")
        raise SystemExit(1)
    return list(projects)
