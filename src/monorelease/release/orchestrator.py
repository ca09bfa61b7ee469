"""Release orchestration.

Drives the per-project pipeline:

    classify -> resolve -> write version file -> write changelog
    -> git commit/tag/push -> build -> publish

Every step of one project runs in order. In a batch, everything that
touches the working tree runs one project at a time; only the uploads
are fanned out, on a bounded thread pool. Errors are caught at the
project boundary and turned into a ``ProjectOutcome``.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Any

import structlog

from monorelease.config.loader import get_release_group, resolve_project_config
from monorelease.config.models import MonoReleaseConfig, ResolvedProjectConfig, SyncStrategy
from monorelease.core.changelog import (
    ChangelogOptions,
    compare_url,
    render_changelog,
    render_workspace_changelog,
    write_changelog,
)
from monorelease.core.commits import ParsedCommit, filter_commits_for_project, parse_commits
from monorelease.core.resolver import ResolutionStatus, VersionResult, resolve_version, resolve_workspace
from monorelease.core.tags import generate_tag_name, tag_match_pattern
from monorelease.exceptions import BuildError, ConfigurationError, GitOperationError, MonoReleaseError
from monorelease.project.version_files import read_project_version, write_project_version
from monorelease.publish import get_publisher
from monorelease.publish.base import BasePublisher, UploadResult
from monorelease.release.build import BuildRunner
from monorelease.vcs.ci import is_ci
from monorelease.vcs.git import Commit, GitRepository
from monorelease.workspace.graph import DependencyGraph, affected_projects

logger = structlog.get_logger(__name__)

PublisherFactory = Callable[[Any], BasePublisher]


# =============================================================================
# Options and results
# =============================================================================


@dataclass(frozen=True)
class ReleaseOptions:
    """Per-invocation options. ``None`` means "use the configuration"."""

    version: str | None = None
    release_as: str | None = None
    preid: str | None = None
    first_release: bool | None = None
    dry_run: bool = False
    changelog: bool = True
    git_commit: bool | None = None
    git_tag: bool | None = None
    git_push: bool | None = None
    build: bool = True
    publish: bool = False
    track_deps: bool | None = None
    sync: bool = False
    sync_strategy: SyncStrategy | None = None
    release_group: str | None = None
    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    date: str | None = None


class OutcomeStatus(str, Enum):
    RELEASED = "released"
    PLANNED = "planned"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class ProjectOutcome:
    """What happened to one project."""

    project: str
    status: OutcomeStatus
    version: str | None = None
    previous_version: str | None = None
    tag: str | None = None
    changelog: str | None = None
    upload: UploadResult | None = None
    message: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.status == OutcomeStatus.FAILED

    def fail(self, error: Exception | str) -> ProjectOutcome:
        self.status = OutcomeStatus.FAILED
        self.message = str(error)
        return self


@dataclass
class BatchResult:
    """Aggregated outcomes of a batch run."""

    outcomes: list[ProjectOutcome] = field(default_factory=list)

    def _count(self, *statuses: OutcomeStatus) -> int:
        return sum(1 for o in self.outcomes if o.status in statuses)

    @property
    def succeeded(self) -> int:
        return self._count(OutcomeStatus.RELEASED, OutcomeStatus.PLANNED)

    @property
    def skipped(self) -> int:
        return self._count(OutcomeStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(OutcomeStatus.FAILED)

    @property
    def failures(self) -> list[tuple[str, str]]:
        return [(o.project, o.message or "unknown error") for o in self.outcomes if o.failed]

    @property
    def success(self) -> bool:
        return self.failed == 0


@dataclass
class _PendingUpload:
    outcome: ProjectOutcome
    version: str


def should_skip_project(project: str, include: Iterable[str] = (), exclude: Iterable[str] = ()) -> bool:
    """Apply ``--include`` / ``--exclude`` glob filters to a project name."""
    include = list(include)
    if include and not any(fnmatchcase(project, pattern) for pattern in include):
        return True
    return any(fnmatchcase(project, pattern) for pattern in exclude)


# =============================================================================
# Orchestrator
# =============================================================================


class ReleaseOrchestrator:
    """Releases projects of one workspace.

    Args:
        workspace_root: Directory holding the workspace pyproject.toml
        config: Workspace configuration
        graph: Dependency graph; built from the configuration when None
        repo: Git repository; without one there is no history, no tags and
            no git step
        build_runner: Runs a project's build target before publishing
        publisher_factory: Registry configuration to publisher
        env: Environment for CI detection and registry credentials
        max_workers: Upload concurrency of ``release_all``
    """

    def __init__(
        self,
        workspace_root: Path,
        config: MonoReleaseConfig,
        *,
        graph: DependencyGraph | None = None,
        repo: GitRepository | None = None,
        build_runner: BuildRunner | None = None,
        publisher_factory: PublisherFactory = get_publisher,
        env: Mapping[str, str] | None = None,
        max_workers: int | None = None,
    ) -> None:
        self.workspace_root = Path(workspace_root).resolve()
        self.config = config
        self.graph = graph if graph is not None else DependencyGraph(config.dependency_map)
        self.repo = repo
        self.build_runner = build_runner
        self.publisher_factory = publisher_factory
        self.env = os.environ if env is None else env
        self.max_workers = max_workers or config.max_workers

        self._configs: dict[str, ResolvedProjectConfig] = {}
        self._commits: dict[str | None, list[Commit]] = {}

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def project_config(self, project: str) -> ResolvedProjectConfig:
        if project not in self._configs:
            self._configs[project] = resolve_project_config(
                self.config, project, workspace_root=self.workspace_root
            )
        return self._configs[project]

    def _tag_kwargs(self, cfg: ResolvedProjectConfig) -> dict[str, Any]:
        return {
            "relationship": cfg.relationship,
            "release_group": cfg.release_group,
            "tag_format": cfg.tag_format,
            "prefix": cfg.tag_prefix,
            "suffix": cfg.tag_suffix,
        }

    def tag_name(self, project: str, version: str) -> str:
        cfg = self.project_config(project)
        return generate_tag_name(project, version, **self._tag_kwargs(cfg))

    def latest_tag(self, project: str) -> str | None:
        if self.repo is None:
            return None
        cfg = self.project_config(project)
        return self.repo.get_latest_tag(tag_match_pattern(project, **self._tag_kwargs(cfg)))

    def commits_since(self, tag: str | None) -> list[Commit]:
        if self.repo is None:
            return []
        if tag not in self._commits:
            self._commits[tag] = self.repo.get_commits_since_tag(tag)
        return self._commits[tag]

    def project_commits(self, project: str) -> list[ParsedCommit]:
        """Conventional commits applying to ``project`` since its last tag."""
        commits = self.commits_since(self.latest_tag(project))
        return parse_commits(filter_commits_for_project(commits, project))

    def _repo_relative_roots(self) -> dict[str, str]:
        assert self.repo is not None
        roots: dict[str, str] = {}
        for name, root in self.config.project_roots.items():
            path = (self.workspace_root / root).resolve()
            try:
                roots[name] = path.relative_to(self.repo.root).as_posix()
            except ValueError:
                logger.debug("project_outside_repository", project=name, root=str(path))
        return roots

    def is_affected(self, project: str, since_tag: str | None) -> bool:
        """Whether files of ``project`` or of its dependencies changed since the tag.

        Projects not listed in the workspace configuration count as affected.
        """
        if self.repo is None or project not in self.config.projects:
            return True
        changed = self.repo.get_changed_files(since_tag)
        return project in affected_projects(changed, self._repo_relative_roots(), self.graph)

    def repository_url(self, project: str) -> str | None:
        cfg = self.project_config(project)
        if cfg.changelog.repository_url:
            return cfg.changelog.repository_url
        if self.repo is None:
            return None
        return self.repo.get_remote_url(cfg.git.remote)

    def find_artifact(self, project: str, version: str) -> Path:
        """Artifact to publish.

        ``artifact`` is a path or glob relative to the workspace root with
        ``{projectName}`` and ``{version}`` placeholders. Without it the
        single archive in the dist directory is used.

        Raises:
            ProjectError: Via publishing, when the artifact does not exist
        """
        cfg = self.project_config(project)
        if cfg.artifact:
            pattern = cfg.artifact.replace("{projectName}", project).replace("{version}", version)
        else:
            pattern = f"{cfg.effective_dist_dir}/*.t*gz"

        matches = sorted(self.workspace_root.glob(pattern))
        if len(matches) > 1:
            logger.warning("multiple_artifacts_found", project=project, using=str(matches[-1]))
        return matches[-1] if matches else self.workspace_root / pattern

    # -------------------------------------------------------------------------
    # Operations exposed to callers
    # -------------------------------------------------------------------------

    def _resolve(
        self,
        project: str,
        *,
        version: str | None,
        release_as: str | None,
        preid: str | None,
        first_release: bool | None,
    ) -> VersionResult:
        cfg = self.project_config(project)
        source = read_project_version(cfg.root, cfg.version_files, cfg.version_path)
        latest_tag = self.latest_tag(project)
        commits = self.commits_since(latest_tag)

        return resolve_version(
            project,
            source.version if source else None,
            commits,
            version=version,
            release_as=release_as,
            preid=preid,
            affected=self.is_affected(project, latest_tag) if commits else True,
            first_release=cfg.first_release if first_release is None else first_release,
            latest_tag=latest_tag,
            minor_types=cfg.commit_types_minor,
            patch_types=cfg.commit_types_patch,
            source_file=source.path if source else None,
        )

    def resolve(
        self,
        project: str,
        version: str | None = None,
        release_as: str | None = None,
        *,
        preid: str | None = None,
        first_release: bool | None = None,
    ) -> VersionResult:
        """Next version of ``project``; failures come back as a failed result."""
        try:
            return self._resolve(
                project,
                version=version,
                release_as=release_as,
                preid=preid,
                first_release=first_release,
            )
        except MonoReleaseError as e:
            logger.error("version_resolution_failed", project=project, error=str(e))
            return VersionResult.failed(project, e)

    def current_version(self, project: str) -> str | None:
        try:
            cfg = self.project_config(project)
            source = read_project_version(cfg.root, cfg.version_files, cfg.version_path)
        except MonoReleaseError:
            return None
        return source.version if source else None

    def changelog_options(self, project: str, version: str, release_date: str | None = None) -> ChangelogOptions:
        cfg = self.project_config(project)
        repository_url = self.repository_url(project)
        if cfg.changelog.include_date:
            release_date = release_date or date.today().isoformat()
        else:
            release_date = None
        return ChangelogOptions(
            version=version,
            date=release_date,
            project_name=project,
            repository_url=repository_url,
            compare_url=compare_url(repository_url, self.latest_tag(project), self.tag_name(project, version)),
        )

    def changelog(self, project: str, version: str, *, release_date: str | None = None) -> str:
        """Markdown changelog entry of ``project`` at ``version``.

        Raises:
            GitOperationError: If the history cannot be read
        """
        return render_changelog(
            self.project_commits(project),
            self.changelog_options(project, version, release_date),
        )

    def workspace_changelog(
        self,
        version: str,
        projects: Iterable[str] | None = None,
        *,
        release_date: str | None = None,
    ) -> str:
        """Single entry covering several projects, plus global changes."""
        names = list(projects) if projects is not None else self.config.project_names
        return render_workspace_changelog(
            {name: self.project_commits(name) for name in names},
            ChangelogOptions(version=version, date=release_date),
        )

    def write_version(self, project: str, version: str) -> Path:
        """Write ``version`` into the project's version file.

        Raises:
            VersionNotFoundError: If the project has no version file
        """
        cfg = self.project_config(project)
        path = write_project_version(cfg.root, cfg.version_files, version, cfg.version_path)
        logger.info("version_file_written", project=project, path=str(path), version=version)
        return path

    def publish(self, project: str, version: str, artifact: Path | None = None) -> UploadResult:
        """Publish the artifact of ``project``; failures come back as a failed result."""
        try:
            cfg = self.project_config(project)
            if cfg.registry is None:
                raise ConfigurationError(f"No registry configured for project {project}")
            artifact = artifact or self.find_artifact(project, version)
            with self.publisher_factory(cfg.registry.with_environment(self.env)) as publisher:
                return publisher.publish(artifact, version)
        except MonoReleaseError as e:
            logger.error("publish_failed", project=project, version=version, error=str(e))
            return UploadResult.from_error(e)
        except Exception as e:
            # Also runs inside the upload pool: nothing may escape.
            logger.exception("publish_crashed", project=project, version=version)
            return UploadResult.from_error(e)

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    def _git_enabled(self, cfg: ResolvedProjectConfig, options: ReleaseOptions) -> tuple[bool, bool, bool]:
        commit = cfg.git.commit if options.git_commit is None else options.git_commit
        tag = cfg.git.tag if options.git_tag is None else options.git_tag
        push = cfg.git.push if options.git_push is None else options.git_push
        return commit, tag, push

    def _run_git(
        self,
        outcome: ProjectOutcome,
        cfg: ResolvedProjectConfig,
        options: ReleaseOptions,
        written: list[Path],
    ) -> None:
        commit, tag, push = self._git_enabled(cfg, options)
        if not (commit or tag or push):
            return

        if cfg.git.ci_only and not is_ci(self.env):
            outcome.warnings.append("Git operations are restricted to CI; skipped")
            logger.warning("git_skipped_outside_ci", project=cfg.name)
            return

        if self.repo is None:
            raise GitOperationError(f"Git operations requested for {cfg.name} but no repository is available")

        version = outcome.version or ""
        if commit:
            self.repo.add(written)
            message = cfg.git.commit_message.replace("{projectName}", cfg.name).replace("{version}", version)
            self.repo.commit(message)

        if tag:
            outcome.tag = self.tag_name(cfg.name, version)
            if not self.repo.tag(outcome.tag, message=f"Release {outcome.tag}"):
                outcome.warnings.append(f"Tag {outcome.tag} already exists")

        if push:
            self.repo.push(cfg.git.remote)

    def _run_build(self, cfg: ResolvedProjectConfig) -> None:
        if self.build_runner is None or not cfg.build_target:
            logger.debug("build_step_skipped", project=cfg.name)
            return
        if not self.build_runner(cfg.name, cfg.build_target, cfg.root):
            raise BuildError(f"Build target '{cfg.build_target}' failed for {cfg.name}")

    def _prepare(
        self,
        project: str,
        options: ReleaseOptions,
        result: VersionResult | None = None,
    ) -> tuple[ProjectOutcome, _PendingUpload | None]:
        """Everything up to the upload. Never raises."""
        outcome = ProjectOutcome(project=project, status=OutcomeStatus.FAILED)
        log = logger.bind(project=project)

        if result is None:
            result = self.resolve(
                project,
                options.version,
                options.release_as,
                preid=options.preid,
                first_release=options.first_release,
            )

        outcome.previous_version = result.current_version
        outcome.version = result.new_version

        if result.status == ResolutionStatus.FAILED:
            return outcome.fail(result.error or "version resolution failed"), None
        if result.status == ResolutionStatus.NOT_AFFECTED:
            outcome.status = OutcomeStatus.SKIPPED
            outcome.message = result.reason
            log.info("project_skipped", reason=result.reason)
            return outcome, None

        version = result.new_version or ""
        try:
            cfg = self.project_config(project)

            if options.changelog and cfg.changelog.enabled:
                try:
                    outcome.changelog = self.changelog(project, version, release_date=options.date)
                except MonoReleaseError as e:
                    outcome.warnings.append(f"Changelog step failed: {e}")
                    log.warning("changelog_step_failed", error=str(e))

            if options.dry_run:
                outcome.status = OutcomeStatus.PLANNED
                outcome.tag = self.tag_name(project, version)
                log.info("dry_run_planned", version=version)
                return outcome, None

            written = [self.write_version(project, version)]

            if outcome.changelog is not None:
                try:
                    written.append(write_changelog(cfg.changelog_path, outcome.changelog))
                except MonoReleaseError as e:
                    outcome.warnings.append(f"Changelog step failed: {e}")
                    log.warning("changelog_step_failed", error=str(e))

            self._run_git(outcome, cfg, options, written)

            if options.publish:
                if options.build:
                    self._run_build(cfg)
                outcome.status = OutcomeStatus.RELEASED
                return outcome, _PendingUpload(outcome=outcome, version=version)

        except MonoReleaseError as e:
            log.error("release_step_failed", error=str(e))
            return outcome.fail(e), None

        outcome.status = OutcomeStatus.RELEASED
        return outcome, None

    def _upload(self, pending: _PendingUpload) -> ProjectOutcome:
        outcome = pending.outcome
        outcome.upload = self.publish(outcome.project, pending.version)
        if outcome.upload.failed:
            outcome.fail(outcome.upload.error or "upload failed")
        elif outcome.upload.skipped:
            outcome.warnings.append(outcome.upload.reason or "Artifact already published")
        return outcome

    def release_project(self, project: str, options: ReleaseOptions | None = None) -> ProjectOutcome:
        """Run the full pipeline for one project. Never raises."""
        outcome, pending = self._prepare(project, options or ReleaseOptions())
        if pending is not None:
            self._upload(pending)
        logger.info("project_release_finished", project=project, status=outcome.status.value)
        return outcome

    def select_projects(self, options: ReleaseOptions, projects: Iterable[str] | None = None) -> list[str]:
        names = list(projects) if projects is not None else self.config.project_names
        selected = [name for name in names if not should_skip_project(name, options.include, options.exclude)]
        for name in names:
            if name not in selected:
                logger.info("project_filtered_out", project=name)
        return selected

    def resolve_all(self, projects: Iterable[str], options: ReleaseOptions) -> dict[str, VersionResult]:
        """Versions of ``projects``, with dependents and sync applied."""
        group = get_release_group(self.config, options.release_group)
        track_deps = self.config.track_deps if options.track_deps is None else options.track_deps

        def resolve_one(name: str, version: str | None, bump: Any) -> VersionResult:
            return self.resolve(
                name,
                version,
                bump,
                preid=options.preid,
                first_release=options.first_release,
            )

        return resolve_workspace(
            projects,
            self.graph,
            resolve_one,
            track_deps=track_deps,
            sync=options.sync,
            sync_strategy=options.sync_strategy or (group.sync_strategy if group else "bump"),
            primary=group.primary if group else None,
            read_current=self.current_version,
            version=options.version,
            release_as=options.release_as,
        )

    def release_all(self, options: ReleaseOptions | None = None, projects: Iterable[str] | None = None) -> BatchResult:
        """Release every selected project; one failure never stops the others."""
        options = options or ReleaseOptions()
        selected = self.select_projects(options, projects)
        logger.info("batch_release_started", projects=selected, dry_run=options.dry_run)

        results = self.resolve_all(selected, options)

        # Working-tree and git steps: strictly one project at a time.
        batch = BatchResult()
        pending: list[_PendingUpload] = []
        for name, result in results.items():
            outcome, upload = self._prepare(name, options, result)
            batch.outcomes.append(outcome)
            if upload is not None:
                pending.append(upload)

        if pending:
            logger.info("uploads_started", count=len(pending), max_workers=self.max_workers)
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                list(executor.map(self._upload, pending))

        logger.info(
            "batch_release_finished",
            succeeded=batch.succeeded,
            skipped=batch.skipped,
            failed=batch.failed,
        )
        return batch
