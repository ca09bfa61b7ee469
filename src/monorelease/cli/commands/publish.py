"""Implementation of the 'publish' command."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from rich.panel import Panel

from monorelease.cli.context import build_orchestrator

if TYPE_CHECKING:
    from rich.console import Console


def run_publish(
    path: str | None,
    project: str,
    version: str | None,
    artifact: str | None,
    console: Console,
    err_console: Console,
) -> None:
    """Publish a project's built artifact to its registry.

    Args:
        path: Optional path inside the workspace
        project: Project to publish
        version: Version to publish as (defaults to the version file's)
        artifact: Artifact path (defaults to the configured artifact)
        console: Console for standard output
        err_console: Console for error output
    """
    orchestrator = build_orchestrator(path, err_console)

    version = version or orchestrator.current_version(project)
    if not version:
        err_console.print(
            f"[red]Error:[/] No version found for {project}. Pass [cyan]--version[/]."
        )
        raise SystemExit(1)

    result = orchestrator.publish(project, version, Path(artifact) if artifact else None)

    if result.failed:
        err_console.print(f"[red]Publish failed:[/] {result.error}")
        raise SystemExit(1)

    if result.skipped:
        console.print(f"[yellow]Skipped:[/] {result.reason} ({result.url})")
        return

    console.print(
        Panel(
            f"[green]Published {project} {version}[/]\n\n  {result.url}",
            title="[green]Publish Complete[/]",
            border_style="green",
        )
    )
