"""Version resolution.

Single-project resolution picks the next version from, in order of
precedence: an explicit version, an explicit bump type, or the
conventional commits since the project's last release tag.

Workspace resolution expands the set of targeted projects with the
projects that depend on them (``track_deps``) and optionally forces one
shared version on all of them (``sync``).
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path

import structlog

from monorelease.core.commits import AnalysisOutcome, ParsedCommit, analyze_commits
from monorelease.core.version import (
    FIRST_RELEASE_VERSIONS,
    BumpType,
    Version,
    max_version,
    parse_version,
    strip_tag_prefix,
)
from monorelease.exceptions import (
    AmbiguousIntentError,
    MonoReleaseError,
    VersionNotFoundError,
)
from monorelease.vcs.git import Commit
from monorelease.workspace.graph import DependencyGraph

logger = structlog.get_logger(__name__)


class ResolutionStatus(str, Enum):
    RESOLVED = "resolved"
    NOT_AFFECTED = "not_affected"
    FAILED = "failed"


@dataclass(frozen=True)
class ProjectVersionState:
    """Version state of one project during a resolution pass."""

    project_name: str
    current_version: Version | None
    resolved_version: Version | None = None
    is_first_release: bool = False


@dataclass(frozen=True)
class VersionResult:
    """Outcome of resolving one project's next version."""

    project: str
    status: ResolutionStatus
    current_version: str | None = None
    new_version: str | None = None
    bump: BumpType = BumpType.NONE
    is_first_release: bool = False
    reason: str | None = None
    error: str | None = None
    source_file: Path | None = None
    commits: tuple[ParsedCommit, ...] = field(default=())

    @property
    def succeeded(self) -> bool:
        return self.status != ResolutionStatus.FAILED

    @property
    def changed(self) -> bool:
        return self.status == ResolutionStatus.RESOLVED and self.new_version != self.current_version

    @classmethod
    def failed(cls, project: str, error: Exception | str) -> VersionResult:
        return cls(project=project, status=ResolutionStatus.FAILED, error=str(error))


# =============================================================================
# Single project
# =============================================================================


def initial_version(bump: BumpType) -> Version:
    """First version of a never-released project for ``bump``."""
    return parse_version(FIRST_RELEASE_VERSIONS.get(bump, FIRST_RELEASE_VERSIONS[BumpType.PATCH]))


def resolve_version(
    project: str,
    current_version: str | None,
    commits: Sequence[Commit],
    *,
    version: str | None = None,
    release_as: BumpType | str | None = None,
    preid: str | None = None,
    affected: bool = True,
    first_release: bool = False,
    latest_tag: str | None = None,
    minor_types: Sequence[str] = ("feat",),
    patch_types: Sequence[str] = ("fix",),
    source_file: Path | None = None,
) -> VersionResult:
    """Resolve the next version of one project.

    Args:
        project: Project name
        current_version: Version read from the project's version file, if any
        commits: Raw commits since the project's last release tag
        version: Explicit version, used verbatim
        release_as: Explicit bump type
        preid: Pre-release identifier for prerelease bumps
        affected: Whether the affected-project computation includes ``project``
        first_release: Allow releasing a project without a readable version
        latest_tag: Most recent tag of the project, used in first-release mode
        minor_types: Commit types that trigger a minor bump
        patch_types: Commit types that trigger a patch bump
        source_file: File the current version came from

    Returns:
        VersionResult with status RESOLVED or NOT_AFFECTED

    Raises:
        InvalidVersionError: If an explicit or current version is not semver
        ConfigurationError: If ``release_as`` is not a known bump type
        VersionNotFoundError: If there is no current version and first-release mode is off
        AmbiguousIntentError: If there is nothing to release and no explicit intent
    """
    state = _initial_state(project, current_version, first_release, latest_tag)
    current = state.current_version or Version(0, 0, 0)
    current_str = current_version or None

    def resolved(new: Version, bump: BumpType, commits: tuple[ParsedCommit, ...] = ()) -> VersionResult:
        final = replace(state, resolved_version=new)
        logger.info(
            "version_resolved",
            project=project,
            current=str(current),
            new=str(final.resolved_version),
            bump=str(bump),
        )
        return VersionResult(
            project=project,
            status=ResolutionStatus.RESOLVED,
            current_version=current_str,
            new_version=str(final.resolved_version),
            bump=bump,
            is_first_release=final.is_first_release,
            source_file=source_file,
            commits=commits,
        )

    if version:
        return resolved(parse_version(version), BumpType.NONE)

    bump = BumpType.parse(release_as) if release_as else BumpType.NONE
    if bump != BumpType.NONE:
        return resolved(current.bump(bump, preid), bump)

    analysis = analyze_commits(
        commits,
        project,
        affected=affected,
        minor_types=minor_types,
        patch_types=patch_types,
    )

    if analysis.outcome == AnalysisOutcome.NO_COMMITS:
        if not first_release:
            raise AmbiguousIntentError()
        return resolved(_apply_bump(current, BumpType.PATCH, state.is_first_release, preid), BumpType.PATCH)

    if analysis.outcome == AnalysisOutcome.NOT_AFFECTED:
        logger.info("project_not_affected", project=project)
        return VersionResult(
            project=project,
            status=ResolutionStatus.NOT_AFFECTED,
            current_version=current_str,
            new_version=str(current),
            reason="Project not affected by recent changes",
            source_file=source_file,
        )

    bump = analysis.bump
    if analysis.outcome == AnalysisOutcome.NO_CONVENTIONAL:
        logger.warning(
            "no_conventional_commits",
            project=project,
            commits=len(commits),
            fallback="patch",
        )
        bump = BumpType.PATCH

    new = _apply_bump(current, bump, state.is_first_release, preid)
    return resolved(new, bump, analysis.relevant)


def _initial_state(
    project: str,
    current_version: str | None,
    first_release: bool,
    latest_tag: str | None,
) -> ProjectVersionState:
    if current_version:
        current = parse_version(current_version)
        return ProjectVersionState(project, current, is_first_release=current.is_initial)

    if not first_release:
        raise VersionNotFoundError(
            f"No version found for project {project}. "
            "Use --version, --first-release, or set a version in the project's version file."
        )

    if latest_tag:
        current = parse_version(strip_tag_prefix(latest_tag))
        logger.info("first_release_from_tag", project=project, tag=latest_tag, version=str(current))
        return ProjectVersionState(project, current, is_first_release=current.is_initial)

    logger.info("first_release_from_zero", project=project)
    return ProjectVersionState(project, Version(0, 0, 0), is_first_release=True)


def _apply_bump(current: Version, bump: BumpType, is_first_release: bool, preid: str | None) -> Version:
    if is_first_release and bump in FIRST_RELEASE_VERSIONS:
        return initial_version(bump)
    return current.bump(bump, preid)


# =============================================================================
# Workspace
# =============================================================================


# Resolves one project given an optional forced version and bump.
ProjectResolver = Callable[[str, str | None, BumpType | None], VersionResult]
# Reads the current version of a project (None when unreadable).
CurrentVersionReader = Callable[[str], str | None]


def collect_projects(
    targets: Iterable[str],
    graph: DependencyGraph,
    *,
    track_deps: bool = False,
    sync_projects: Iterable[str] = (),
) -> list[str]:
    """Targets, then sync members, then (with ``track_deps``) their dependents."""
    projects = list(dict.fromkeys([*targets, *sync_projects]))
    if track_deps:
        projects = graph.with_dependents(projects)
    return projects


def resolve_sync_version(
    projects: Sequence[str],
    *,
    strategy: str,
    resolve: ProjectResolver,
    read_current: CurrentVersionReader,
    primary: str | None = None,
    version: str | None = None,
    release_as: BumpType | str | None = None,
) -> str:
    """Single version shared by every project of a synchronized set.

    ``bump`` resolves the primary project and uses its version; ``highest``
    takes the highest current version, bumped once more when ``release_as``
    is given. An explicit version wins over both.
    """
    if version:
        return str(parse_version(version))

    if strategy == "highest":
        currents = [parse_version(v) for v in (read_current(p) for p in projects) if v]
        highest = max_version(currents) if currents else Version(0, 0, 0)
        if release_as:
            highest = highest.bump(BumpType.parse(release_as))
        return str(highest)

    main = primary or projects[0]
    result = resolve(main, None, BumpType.parse(release_as) if release_as else None)
    if result.status == ResolutionStatus.FAILED or result.new_version is None:
        raise MonoReleaseError(f"Could not resolve version of primary project {main}: {result.error}")
    return result.new_version


def resolve_workspace(
    targets: Iterable[str],
    graph: DependencyGraph,
    resolve: ProjectResolver,
    *,
    track_deps: bool = False,
    sync: bool = False,
    sync_projects: Iterable[str] = (),
    sync_strategy: str = "bump",
    primary: str | None = None,
    read_current: CurrentVersionReader | None = None,
    version: str | None = None,
    release_as: BumpType | str | None = None,
) -> dict[str, VersionResult]:
    """Resolve versions of the targeted projects and everything they pull in.

    Args:
        targets: Directly targeted projects
        graph: Workspace dependency graph
        resolve: Single-project resolver (must not raise)
        track_deps: Also version projects depending on the targets
        sync: Give every project the same version
        sync_projects: Extra projects joining the synchronized set
        sync_strategy: ``bump`` or ``highest``
        primary: Project whose resolution drives the ``bump`` strategy
        read_current: Current version lookup, required for ``highest``
        version: Explicit version
        release_as: Explicit bump type

    Returns:
        Project name to VersionResult, in processing order
    """
    projects = collect_projects(targets, graph, track_deps=track_deps, sync_projects=sync_projects)
    logger.info("workspace_projects", projects=projects, track_deps=track_deps, sync=sync)

    forced_version = version
    try:
        forced_bump = BumpType.parse(release_as) if release_as else None
    except MonoReleaseError as e:
        logger.error("invalid_bump_type", release_as=str(release_as))
        return {project: VersionResult.failed(project, e) for project in projects}

    if sync and projects:
        try:
            forced_version = resolve_sync_version(
                projects,
                strategy=sync_strategy,
                resolve=resolve,
                read_current=read_current or (lambda _project: None),
                primary=primary,
                version=version,
                release_as=release_as,
            )
        except MonoReleaseError as e:
            logger.error("sync_version_failed", error=str(e))
            return {project: VersionResult.failed(project, e) for project in projects}
        logger.info("sync_version_target", version=forced_version, strategy=sync_strategy)

    results: dict[str, VersionResult] = {}
    for project in projects:
        results[project] = resolve(project, forced_version, None if forced_version else forced_bump)
    return results

