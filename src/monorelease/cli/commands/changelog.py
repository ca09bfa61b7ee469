"""Implementation of the 'changelog' command."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.panel import Panel

from monorelease.cli.context import build_orchestrator
from monorelease.core.changelog import write_changelog
from monorelease.exceptions import MonoReleaseError

if TYPE_CHECKING:
    from rich.console import Console


def run_changelog(
    path: str | None,
    project: str | None,
    version: str,
    workspace: bool,
    release_date: str | None,
    execute: bool,
    console: Console,
    err_console: Console,
) -> None:
    """Render a changelog entry; with --execute prepend it to the changelog file.

    Args:
        path: Optional path inside the workspace
        project: Project to render (ignored with workspace)
        version: Version the entry is for
        workspace: Render one entry for every project
        release_date: Date shown in the heading (defaults to today)
        execute: Whether to write the changelog file
        console: Console for standard output
        err_console: Console for error output
    """
    orchestrator = build_orchestrator(path, err_console)

    if not workspace and not project:
        err_console.print("[red]Error:[/] Name a project or pass [cyan]--workspace[/].")
        raise SystemExit(1)

    try:
        if workspace:
            content = orchestrator.workspace_changelog(version, release_date=release_date)
            target = orchestrator.workspace_root / orchestrator.config.changelog.file
        else:
            assert project is not None
            content = orchestrator.changelog(project, version, release_date=release_date)
            target = orchestrator.project_config(project).changelog_path
    except MonoReleaseError as e:
        err_console.print(f"[red]Error generating changelog:[/] {e}")
        raise SystemExit(1) from e

    if not execute:
        console.print(Panel(content.rstrip(), title="[yellow]Dry Run Preview[/]", border_style="yellow"))
        console.print(f"\n[dim]Run with [cyan]--execute[/] to write [cyan]{target}[/].[/]")
        return

    try:
        write_changelog(target, content)
    except MonoReleaseError as e:
        err_console.print(f"[red]Error writing changelog:[/] {e}")
        raise SystemExit(1) from e

    console.print(f"  [green]✓[/] Updated {target}")
