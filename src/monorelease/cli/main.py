"""monorelease command line entry point."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console

from monorelease import __version__
from monorelease.cli.commands.changelog import run_changelog
from monorelease.cli.commands.publish import run_publish
from monorelease.cli.commands.release import run_release
from monorelease.cli.commands.version import run_version
from monorelease.log import setup_logging
from monorelease.release import ReleaseOptions

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="monorelease",
    help="Versioning, changelogs and publishing for multi-project repositories.",
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

PathOption = Annotated[str | None, typer.Option("--path", "-p", help="Path inside the workspace.")]
VersionOption = Annotated[str | None, typer.Option("--version", help="Explicit version, e.g. 2.0.0.")]
ReleaseAsOption = Annotated[
    str | None,
    typer.Option("--release-as", help="Explicit bump: major, minor, patch, prerelease or none."),
]
PreidOption = Annotated[str | None, typer.Option("--preid", help="Pre-release identifier, e.g. beta.")]
FirstReleaseOption = Annotated[
    bool | None,
    typer.Option("--first-release/--no-first-release", help="Allow releasing without a version or tag."),
]
ExecuteOption = Annotated[bool, typer.Option("--execute", help="Apply changes (default is a dry run).")]


def _version_callback(value: bool) -> None:
    if value:
        console.print(__version__)
        raise typer.Exit()


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
    json_logs: Annotated[bool, typer.Option("--json-logs", help="Emit logs as JSON lines.")] = False,
    show_version: Annotated[
        bool,
        typer.Option("--tool-version", callback=_version_callback, is_eager=True, help="Show version and exit."),
    ] = False,
) -> None:
    setup_logging("DEBUG" if verbose else "INFO", json_output=json_logs)


@app.command()
def version(
    projects: Annotated[list[str] | None, typer.Argument(help="Projects to version.")] = None,
    all_projects: Annotated[bool, typer.Option("--all", help="Version every project.")] = False,
    version_override: VersionOption = None,
    release_as: ReleaseAsOption = None,
    preid: PreidOption = None,
    first_release: FirstReleaseOption = None,
    sync: Annotated[bool, typer.Option("--sync", help="Give every project the same version.")] = False,
    sync_strategy: Annotated[
        str | None, typer.Option("--sync-strategy", help="bump or highest.")
    ] = None,
    track_deps: Annotated[
        bool | None, typer.Option("--track-deps/--no-track-deps", help="Also version dependents.")
    ] = None,
    execute: ExecuteOption = False,
    path: PathOption = None,
) -> None:
    """Resolve the next version of projects."""
    run_version(
        path,
        projects,
        all_projects,
        version_override,
        release_as,
        preid,
        first_release,
        sync,
        sync_strategy,
        track_deps,
        execute,
        console,
        err_console,
    )


@app.command()
def changelog(
    version_override: Annotated[str, typer.Option("--version", help="Version the entry is for.")],
    project: Annotated[str | None, typer.Argument(help="Project to render.")] = None,
    workspace: Annotated[bool, typer.Option("--workspace", help="One entry for every project.")] = False,
    release_date: Annotated[str | None, typer.Option("--date", help="Date shown in the heading.")] = None,
    execute: ExecuteOption = False,
    path: PathOption = None,
) -> None:
    """Render a changelog entry from conventional commits."""
    run_changelog(path, project, version_override, workspace, release_date, execute, console, err_console)


@app.command()
def publish(
    project: Annotated[str, typer.Argument(help="Project to publish.")],
    version_override: VersionOption = None,
    artifact: Annotated[str | None, typer.Option("--artifact", help="Artifact to upload.")] = None,
    path: PathOption = None,
) -> None:
    """Publish a built artifact to the project's registry."""
    run_publish(path, project, version_override, artifact, console, err_console)


@app.command()
def release(
    projects: Annotated[list[str] | None, typer.Argument(help="Projects to release.")] = None,
    all_projects: Annotated[bool, typer.Option("--all", help="Release every project.")] = False,
    include: Annotated[list[str] | None, typer.Option("--include", help="Glob of projects to include.")] = None,
    exclude: Annotated[list[str] | None, typer.Option("--exclude", help="Glob of projects to exclude.")] = None,
    version_override: VersionOption = None,
    release_as: ReleaseAsOption = None,
    preid: PreidOption = None,
    first_release: FirstReleaseOption = None,
    sync: Annotated[bool, typer.Option("--sync", help="Give every project the same version.")] = False,
    sync_strategy: Annotated[str | None, typer.Option("--sync-strategy", help="bump or highest.")] = None,
    group: Annotated[str | None, typer.Option("--group", help="Release group driving sync settings.")] = None,
    track_deps: Annotated[
        bool | None, typer.Option("--track-deps/--no-track-deps", help="Also release dependents.")
    ] = None,
    git_commit: Annotated[bool | None, typer.Option("--commit/--no-commit", help="Commit version changes.")] = None,
    git_tag: Annotated[bool | None, typer.Option("--tag/--no-tag", help="Tag the release.")] = None,
    git_push: Annotated[bool | None, typer.Option("--push/--no-push", help="Push commits and tags.")] = None,
    skip_changelog: Annotated[bool, typer.Option("--skip-changelog", help="Do not write changelogs.")] = False,
    do_publish: Annotated[bool, typer.Option("--publish", help="Build and publish artifacts.")] = False,
    skip_build: Annotated[bool, typer.Option("--skip-build", help="Publish without running the build.")] = False,
    execute: ExecuteOption = False,
    path: PathOption = None,
) -> None:
    """Version, changelog, tag and publish projects."""
    options = ReleaseOptions(
        version=version_override,
        release_as=release_as,
        preid=preid,
        first_release=first_release,
        dry_run=not execute,
        changelog=not skip_changelog,
        git_commit=git_commit,
        git_tag=git_tag,
        git_push=git_push,
        build=not skip_build,
        publish=do_publish,
        track_deps=track_deps,
        sync=sync,
        sync_strategy=sync_strategy,  # type: ignore[arg-type]
        release_group=group,
        include=tuple(include or ()),
        exclude=tuple(exclude or ()),
    )
    run_release(path, projects, all_projects, options, console, err_console)


if __name__ == "__main__":
    app()
