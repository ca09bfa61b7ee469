"""Implementation of the 'version' command.

Resolves the next version of one or more projects and, with --execute,
writes it to their version files.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.panel import Panel
from rich.table import Table

from monorelease.cli.context import build_orchestrator, resolve_targets
from monorelease.core.commits import summarize_commits
from monorelease.core.resolver import ResolutionStatus, VersionResult
from monorelease.exceptions import MonoReleaseError
from monorelease.release import ReleaseOptions

if TYPE_CHECKING:
    from rich.console import Console

_STATUS_STYLES = {
    ResolutionStatus.RESOLVED: "green",
    ResolutionStatus.NOT_AFFECTED: "yellow",
    ResolutionStatus.FAILED: "red",
}


def version_table(results: dict[str, VersionResult]) -> Table:
    table = Table(title="Version Resolution")
    table.add_column("Project", style="cyan")
    table.add_column("Current")
    table.add_column("Next")
    table.add_column("Bump")
    table.add_column("Changes")
    table.add_column("Status")

    for name, result in results.items():
        style = _STATUS_STYLES.get(result.status, "white")
        table.add_row(
            name,
            result.current_version or "-",
            result.new_version or "-",
            str(result.bump) if result.status == ResolutionStatus.RESOLVED else "-",
            summarize_commits(result.commits) if result.commits else "-",
            f"[{style}]{result.status.value}[/]",
        )
    return table


def run_version(
    path: str | None,
    projects: list[str] | None,
    all_projects: bool,
    version_override: str | None,
    release_as: str | None,
    preid: str | None,
    first_release: bool | None,
    sync: bool,
    sync_strategy: str | None,
    track_deps: bool | None,
    execute: bool,
    console: Console,
    err_console: Console,
) -> None:
    """Run the version command.

    Args:
        path: Optional path inside the workspace
        projects: Project names to version
        all_projects: Version every configured project
        version_override: Explicit version (e.g., "2.0.0")
        release_as: Explicit bump type (e.g., "minor")
        preid: Pre-release identifier (e.g., "beta")
        first_release: Allow versioning projects without a version or tag
        sync: Give every project the same version
        sync_strategy: "bump" or "highest"
        track_deps: Also version projects depending on the targets
        execute: Whether to write the version files
        console: Console for standard output
        err_console: Console for error output
    """
    orchestrator = build_orchestrator(path, err_console)
    targets = resolve_targets(orchestrator, projects, all_projects, err_console)

    options = ReleaseOptions(
        version=version_override,
        release_as=release_as,
        preid=preid,
        first_release=first_release,
        sync=sync,
        sync_strategy=sync_strategy,  # type: ignore[arg-type]
        track_deps=track_deps,
    )
    results = orchestrator.resolve_all(targets, options)
    console.print(version_table(results))

    failed = [r for r in results.values() if r.status == ResolutionStatus.FAILED]
    for result in failed:
        err_console.print(f"[red]Error ({result.project}):[/] {result.error}")

    changed = [r for r in results.values() if r.changed]
    if not changed:
        console.print("[yellow]No version changes.[/]")
        if failed:
            raise SystemExit(1)
        return

    if not execute:
        console.print(
            Panel(
                "[bold]Would update the following version files:[/]\n\n"
                + "\n".join(
                    f"  • [cyan]{r.project}[/] {r.current_version or '(none)'} → [green]{r.new_version}[/]"
                    for r in changed
                ),
                title="[yellow]Dry Run Preview[/]",
                border_style="yellow",
            )
        )
        console.print("\n[dim]Run with [cyan]--execute[/] to apply these changes.[/]")
        if failed:
            raise SystemExit(1)
        return

    for result in changed:
        try:
            written = orchestrator.write_version(result.project, result.new_version or "")
            console.print(f"  [green]✓[/] {result.project}: {written}")
        except MonoReleaseError as e:
            err_console.print(f"[red]Error updating {result.project}:[/] {e}")
            failed.append(result)

    if failed:
        raise SystemExit(1)
