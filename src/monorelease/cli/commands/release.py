"""Implementation of the 'release' command.

Runs the full pipeline for the selected projects. Without --execute the
run is a dry run: versions and changelogs are resolved and shown, nothing
is written, committed, tagged or uploaded.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.panel import Panel
from rich.table import Table

from monorelease.cli.context import build_orchestrator
from monorelease.release import BatchResult, OutcomeStatus, ReleaseOptions

if TYPE_CHECKING:
    from rich.console import Console

_STATUS_STYLES = {
    OutcomeStatus.RELEASED: "green",
    OutcomeStatus.PLANNED: "cyan",
    OutcomeStatus.SKIPPED: "yellow",
    OutcomeStatus.FAILED: "red",
}


def outcome_table(batch: BatchResult) -> Table:
    table = Table(title="Release Summary")
    table.add_column("Project", style="cyan")
    table.add_column("Version")
    table.add_column("Tag")
    table.add_column("Upload")
    table.add_column("Status")

    for outcome in batch.outcomes:
        upload = "-"
        if outcome.upload is not None:
            upload = "skipped" if outcome.upload.skipped else (outcome.upload.url or "-")
        version = outcome.version or "-"
        if outcome.previous_version and outcome.version and outcome.previous_version != outcome.version:
            version = f"{outcome.previous_version} → {outcome.version}"
        style = _STATUS_STYLES[outcome.status]
        table.add_row(outcome.project, version, outcome.tag or "-", upload, f"[{style}]{outcome.status.value}[/]")
    return table


def run_release(
    path: str | None,
    projects: list[str] | None,
    all_projects: bool,
    options: ReleaseOptions,
    console: Console,
    err_console: Console,
) -> None:
    """Run the release command.

    Args:
        path: Optional path inside the workspace
        projects: Project names to release
        all_projects: Release every configured project
        options: Pipeline options; ``dry_run`` unless --execute was given
        console: Console for standard output
        err_console: Console for error output
    """
    orchestrator = build_orchestrator(path, err_console)

    targets: list[str] | None = list(projects) if projects else None
    if targets is None and not (all_projects or options.include):
        err_console.print("[red]Error:[/] Name at least one project or pass [cyan]--all[/].")
        raise SystemExit(1)

    mode_str = "[yellow]DRY-RUN[/]" if options.dry_run else "[green]EXECUTING[/]"
    console.print(f"\n{mode_str} - Releasing projects\n")

    batch = orchestrator.release_all(options, targets)
    console.print(outcome_table(batch))

    for outcome in batch.outcomes:
        for warning in outcome.warnings:
            console.print(f"  [yellow]![/] {outcome.project}: {warning}")
        if options.dry_run and outcome.changelog:
            console.print(Panel(outcome.changelog.rstrip(), title=f"[cyan]{outcome.project}[/]", border_style="dim"))

    for project, message in batch.failures:
        err_console.print(f"[red]Error ({project}):[/] {message}")

    summary = f"{batch.succeeded} succeeded, {batch.skipped} skipped, {batch.failed} failed"
    if not batch.success:
        console.print(Panel(f"[red]{summary}[/]", title="[red]Release Failed[/]", border_style="red"))
        raise SystemExit(1)

    if options.dry_run:
        console.print(Panel(summary, title="[yellow]Dry Run Preview[/]", border_style="yellow"))
        console.print("\n[dim]Run with [cyan]--execute[/] to apply these changes.[/]")
        return

    console.print(Panel(f"[green]{summary}[/]", title="[green]Release Complete[/]", border_style="green"))
