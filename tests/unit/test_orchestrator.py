"""Tests for the release orchestrator."""

from __future__ import annotations

import json

import pytest

from monorelease.config.loader import load_config
from monorelease.config.models import CustomConfig, GitConfig
from monorelease.core.resolver import ResolutionStatus
from monorelease.exceptions import UploadError
from monorelease.publish.base import UploadResult
from monorelease.release import (
    OutcomeStatus,
    ReleaseOptions,
    ReleaseOrchestrator,
    should_skip_project,
)
from monorelease.vcs.git import GitRepository


def _version_of(path):
    return json.loads(path.read_text())["version"]


class FakePublisher:
    """Records publish calls instead of talking to a registry."""

    registry_type = "fake"

    def __init__(self, error=None, skipped=False):
        self.calls = []
        self.error = error
        self.skipped = skipped
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.closed = True

    def publish(self, artifact, version):
        self.calls.append((artifact, version))
        if self.error is not None:
            raise self.error
        url = f"https://artifacts.example.com/{version}/{artifact.name}"
        if self.skipped:
            return UploadResult(uploaded=False, url=url, skipped=True, reason="File already exists in fake")
        return UploadResult(uploaded=True, url=url)


class FakeBuild:
    def __init__(self, succeed=True):
        self.calls = []
        self.succeed = succeed

    def __call__(self, project, target, root):
        self.calls.append((project, target, root))
        return self.succeed


def _orchestrator(root, *, repo=None, publisher=None, build=None, env=None, **config_updates):
    config = load_config(root)
    if config_updates:
        config = config.model_copy(update=config_updates)
    return ReleaseOrchestrator(
        root,
        config,
        repo=repo,
        build_runner=build,
        publisher_factory=lambda registry: publisher,
        env=env if env is not None else {},
    )


class TestProjectFilters:
    """Tests for --include / --exclude."""

    @pytest.mark.parametrize(
        ("project", "include", "exclude", "skipped"),
        [
            ("api", (), (), False),
            ("api", ("a*",), (), False),
            ("web", ("a*",), (), True),
            ("api", (), ("api",), True),
            ("api", ("*",), ("a*",), True),
        ],
    )
    def test_should_skip_project(self, project, include, exclude, skipped):
        """Include narrows, exclude always wins."""
        assert should_skip_project(project, include, exclude) is skipped

    def test_select_projects(self, workspace):
        """Filtering keeps configuration order."""
        orchestrator = _orchestrator(workspace)

        selected = orchestrator.select_projects(ReleaseOptions(exclude=("web",)))

        assert selected == ["api", "core"]


class TestResolve:
    """Tests for ReleaseOrchestrator.resolve()."""

    def test_no_history_needs_intent(self, workspace):
        """Without commits and without intent the result is a failure, not an exception."""
        result = _orchestrator(workspace).resolve("api")

        assert result.status == ResolutionStatus.FAILED
        assert "No commits found" in result.error

    def test_explicit_bump(self, workspace):
        """The version file is the current version."""
        result = _orchestrator(workspace).resolve("api", release_as="minor")

        assert (result.current_version, result.new_version) == ("1.2.0", "1.3.0")
        assert result.source_file == workspace.resolve() / "apps/api/package.json"

    def test_missing_version_file(self, workspace):
        """A project without a version source fails."""
        (workspace / "apps/web/package.json").write_text('{"name": "web"}')

        result = _orchestrator(workspace).resolve("web", release_as="patch")

        assert result.status == ResolutionStatus.FAILED

    def test_unknown_bump_type(self, workspace):
        """An unknown --release-as value fails the project instead of raising."""
        result = _orchestrator(workspace).resolve("api", release_as="bogus")

        assert result.status == ResolutionStatus.FAILED
        assert "Invalid bump type 'bogus'" in result.error

    def test_tag_name(self, workspace):
        """Independent projects are tagged name@version."""
        assert _orchestrator(workspace).tag_name("core", "1.0.1") == "core@1.0.1"

    def test_current_version(self, workspace):
        assert _orchestrator(workspace).current_version("web") == "1.1.0"
        assert _orchestrator(workspace).current_version("docs") is None


class TestReleaseProject:
    """Tests for single-project releases."""

    def test_dry_run_changes_nothing(self, workspace):
        """A dry run plans the release without writing."""
        outcome = _orchestrator(workspace).release_project("api", ReleaseOptions(release_as="minor", dry_run=True))

        assert outcome.status == OutcomeStatus.PLANNED
        assert outcome.version == "1.3.0"
        assert outcome.previous_version == "1.2.0"
        assert outcome.tag == "api@1.3.0"
        assert outcome.changelog.startswith("## 1.3.0")
        assert _version_of(workspace / "apps/api/package.json") == "1.2.0"
        assert not (workspace / "apps/api/CHANGELOG.md").exists()

    def test_release_writes_files(self, workspace):
        """Version file and changelog are updated."""
        outcome = _orchestrator(workspace).release_project("api", ReleaseOptions(release_as="minor"))

        assert outcome.status == OutcomeStatus.RELEASED
        assert _version_of(workspace / "apps/api/package.json") == "1.3.0"
        assert (workspace / "apps/api/CHANGELOG.md").read_text().startswith("## 1.3.0")

    def test_skip_changelog(self, workspace):
        """--skip-changelog leaves the changelog alone."""
        outcome = _orchestrator(workspace).release_project("api", ReleaseOptions(version="2.0.0", changelog=False))

        assert outcome.changelog is None
        assert not (workspace / "apps/api/CHANGELOG.md").exists()

    def test_failed_resolution(self, workspace):
        """Resolution failures become failed outcomes."""
        outcome = _orchestrator(workspace).release_project("api")

        assert outcome.failed
        assert "No commits found" in outcome.message

    def test_git_without_repository(self, workspace):
        """Requesting git steps without a repository fails the project."""
        outcome = _orchestrator(workspace).release_project("api", ReleaseOptions(release_as="patch", git_tag=True))

        assert outcome.failed
        assert "no repository" in outcome.message


class TestPublishing:
    """Tests for the build and publish steps."""

    REGISTRY = CustomConfig(url="https://artifacts.example.com")

    @pytest.fixture
    def artifact(self, workspace):
        path = workspace / "dist/api/api-1.3.0.tgz"
        path.parent.mkdir(parents=True)
        path.write_bytes(b"tarball")
        return path

    def test_build_then_publish(self, workspace, artifact):
        """The build target runs before the artifact is published."""
        publisher, build = FakePublisher(), FakeBuild()
        orchestrator = _orchestrator(workspace, publisher=publisher, build=build, registry=self.REGISTRY)

        outcome = orchestrator.release_project("api", ReleaseOptions(release_as="minor", publish=True))

        assert outcome.status == OutcomeStatus.RELEASED
        assert build.calls == [("api", "build", workspace.resolve() / "apps/api")]
        assert publisher.calls == [(artifact.resolve(), "1.3.0")]
        assert outcome.upload.uploaded

    def test_failing_build(self, workspace, artifact):
        """A failed build stops the project before publishing."""
        publisher = FakePublisher()
        orchestrator = _orchestrator(
            workspace, publisher=publisher, build=FakeBuild(succeed=False), registry=self.REGISTRY
        )

        outcome = orchestrator.release_project("api", ReleaseOptions(release_as="minor", publish=True))

        assert outcome.failed
        assert "Build target 'build' failed" in outcome.message
        assert publisher.calls == []

    def test_skip_build(self, workspace, artifact):
        """--skip-build publishes without building."""
        build = FakeBuild()
        orchestrator = _orchestrator(workspace, publisher=FakePublisher(), build=build, registry=self.REGISTRY)

        orchestrator.release_project("api", ReleaseOptions(release_as="minor", publish=True, build=False))

        assert build.calls == []

    def test_upload_error(self, workspace, artifact):
        """Upload errors fail the project."""
        orchestrator = _orchestrator(
            workspace, publisher=FakePublisher(error=UploadError("access denied")), registry=self.REGISTRY
        )

        outcome = orchestrator.release_project("api", ReleaseOptions(release_as="minor", publish=True))

        assert outcome.failed
        assert outcome.upload.error == "access denied"

    def test_existing_artifact_is_a_warning(self, workspace, artifact):
        """Already-published artifacts do not fail the release."""
        orchestrator = _orchestrator(workspace, publisher=FakePublisher(skipped=True), registry=self.REGISTRY)

        outcome = orchestrator.release_project("api", ReleaseOptions(release_as="minor", publish=True))

        assert outcome.status == OutcomeStatus.RELEASED
        assert outcome.warnings == ["File already exists in fake"]

    def test_no_registry(self, workspace, artifact):
        """Publishing without a registry is reported, not raised."""
        result = _orchestrator(workspace, publisher=FakePublisher()).publish("api", "1.3.0")

        assert result.failed
        assert "No registry configured" in result.error

    def test_artifact_template(self, workspace):
        """Artifact templates expand the project name and version."""
        path = workspace / "out/api-1.3.0.tgz"
        path.parent.mkdir()
        path.write_bytes(b"x")
        orchestrator = _orchestrator(workspace, artifact="out/{projectName}-{version}.tgz")

        assert orchestrator.find_artifact("api", "1.3.0") == workspace.resolve() / "out/api-1.3.0.tgz"

    def test_publisher_closed_after_upload(self, workspace, artifact):
        """The publisher is closed once the artifact is published."""
        publisher = FakePublisher()
        orchestrator = _orchestrator(workspace, publisher=publisher, registry=self.REGISTRY)

        orchestrator.publish("api", "1.3.0")

        assert publisher.calls
        assert publisher.closed

    def test_unexpected_publisher_error(self, workspace, artifact):
        """Errors outside the monorelease hierarchy still come back as a failed result."""
        publisher = FakePublisher(error=RuntimeError("connection pool exploded"))
        orchestrator = _orchestrator(workspace, publisher=publisher, registry=self.REGISTRY)

        result = orchestrator.publish("api", "1.3.0")

        assert result.failed
        assert result.error == "connection pool exploded"
        assert publisher.closed

    def test_dry_run_does_not_publish(self, workspace, artifact):
        publisher = FakePublisher()
        orchestrator = _orchestrator(workspace, publisher=publisher, registry=self.REGISTRY)

        orchestrator.release_project("api", ReleaseOptions(release_as="minor", publish=True, dry_run=True))

        assert publisher.calls == []


class TestReleaseAll:
    """Tests for batch releases."""

    def test_failure_is_isolated(self, workspace):
        """One broken project does not stop the others."""
        (workspace / "apps/web/package.json").write_text('{"name": "web"}')

        batch = _orchestrator(workspace).release_all(ReleaseOptions(release_as="patch"))

        assert (batch.succeeded, batch.skipped, batch.failed) == (2, 0, 1)
        assert [name for name, _ in batch.failures] == ["web"]
        assert not batch.success
        assert _version_of(workspace / "libs/core/package.json") == "1.0.1"
        assert _version_of(workspace / "apps/api/package.json") == "1.2.1"

    def test_unknown_bump_type_fails_every_project(self, workspace):
        """A bad bump type is reported per project, not raised out of the batch."""
        batch = _orchestrator(workspace).release_all(
            ReleaseOptions(release_as="premajor", dry_run=True), projects=["api", "web"]
        )

        assert [o.project for o in batch.outcomes] == ["api", "web"]
        assert batch.failed == 2
        assert all("Invalid bump type" in o.message for o in batch.outcomes)

    def test_unknown_bump_type_with_sync(self, workspace):
        """Synchronized batches report a bad bump type the same way."""
        batch = _orchestrator(workspace).release_all(
            ReleaseOptions(release_as="premajor", sync=True, sync_strategy="highest", dry_run=True)
        )

        assert batch.failed == len(batch.outcomes) == 3

    def test_crashing_upload_is_isolated(self, workspace):
        """An upload raising an unexpected error fails only its own project."""
        for name, version in (("api", "1.2.1"), ("core", "1.0.1"), ("web", "1.1.1")):
            path = workspace / f"dist/{name}/{name}-{version}.tgz"
            path.parent.mkdir(parents=True)
            path.write_bytes(b"x")

        class CrashingPublisher(FakePublisher):
            def publish(self, artifact, version):
                if artifact.name.startswith("api-"):
                    raise ValueError("invalid literal for int() with base 10: 'abc'")
                return super().publish(artifact, version)

        publisher = CrashingPublisher()
        orchestrator = _orchestrator(workspace, publisher=publisher, registry=CustomConfig(url="https://x"))

        batch = orchestrator.release_all(ReleaseOptions(release_as="patch", publish=True))

        assert (batch.succeeded, batch.failed) == (2, 1)
        assert [name for name, _ in batch.failures] == ["api"]
        assert sorted(version for _, version in publisher.calls) == ["1.0.1", "1.1.1"]

    def test_sync_highest(self, workspace):
        """Synchronized releases share one version."""
        batch = _orchestrator(workspace).release_all(
            ReleaseOptions(sync=True, sync_strategy="highest", release_as="patch", dry_run=True)
        )

        assert {o.version for o in batch.outcomes} == {"1.2.1"}
        assert batch.success

    def test_track_deps(self, workspace):
        """Dependents of the targets are released too."""
        batch = _orchestrator(workspace).release_all(
            ReleaseOptions(release_as="patch", track_deps=True, dry_run=True),
            projects=["core"],
        )

        assert [o.project for o in batch.outcomes] == ["core", "api", "web"]

    def test_parallel_uploads(self, workspace):
        """Every prepared project is uploaded."""
        for name, version in (("api", "1.2.1"), ("core", "1.0.1"), ("web", "1.1.1")):
            path = workspace / f"dist/{name}/{name}-{version}.tgz"
            path.parent.mkdir(parents=True)
            path.write_bytes(b"x")
        publisher = FakePublisher()
        orchestrator = _orchestrator(workspace, publisher=publisher, registry=CustomConfig(url="https://x"))

        batch = orchestrator.release_all(ReleaseOptions(release_as="patch", publish=True))

        assert batch.succeeded == 3
        assert sorted(version for _, version in publisher.calls) == ["1.0.1", "1.1.1", "1.2.1"]


class TestGitRelease:
    """Tests against a real git history."""

    def test_affected_projects(self, git_workspace, commit_file):
        """A change in api bumps api, patches web and skips core."""
        commit_file(git_workspace, "apps/api/src/index.ts", "export {}\n", "feat(api): add endpoint")
        orchestrator = _orchestrator(git_workspace, repo=GitRepository(git_workspace))

        results = {name: orchestrator.resolve(name) for name in ("api", "core", "web")}

        assert results["api"].new_version == "1.3.0"
        assert results["core"].status == ResolutionStatus.NOT_AFFECTED
        assert results["web"].new_version == "1.1.1"

    def test_changelog_from_history(self, git_workspace, commit_file):
        """The changelog lists the project's commits since its tag."""
        commit_file(git_workspace, "apps/api/a.ts", "a\n", "feat(api): add endpoint")
        commit_file(git_workspace, "apps/web/b.ts", "b\n", "fix(web): layout")
        orchestrator = _orchestrator(git_workspace, repo=GitRepository(git_workspace))

        text = orchestrator.changelog("api", "1.3.0")

        assert "add endpoint" in text
        assert "layout" not in text

    def test_commit_and_tag(self, git_workspace, commit_file, run_git):
        """Released projects are committed and tagged, unaffected ones skipped."""
        commit_file(git_workspace, "apps/api/src/index.ts", "export {}\n", "feat(api): add endpoint")
        orchestrator = _orchestrator(git_workspace, repo=GitRepository(git_workspace))

        batch = orchestrator.release_all(ReleaseOptions(git_commit=True, git_tag=True))

        assert (batch.succeeded, batch.skipped, batch.failed) == (2, 1, 0)
        tags = run_git(git_workspace, "tag", "--list").splitlines()
        assert "api@1.3.0" in tags
        assert "web@1.1.1" in tags
        assert "core@1.0.1" not in tags
        assert run_git(git_workspace, "log", "-1", "--format=%s") == "chore(release): web 1.1.1"
        assert run_git(git_workspace, "status", "--porcelain") == ""

    def test_existing_tag_is_a_warning(self, git_workspace, run_git):
        """Tagging an existing tag is a no-op with a warning."""
        run_git(git_workspace, "tag", "api@9.0.0")
        orchestrator = _orchestrator(git_workspace, repo=GitRepository(git_workspace))

        outcome = orchestrator.release_project("api", ReleaseOptions(version="9.0.0", git_tag=True))

        assert outcome.status == OutcomeStatus.RELEASED
        assert outcome.warnings == ["Tag api@9.0.0 already exists"]

    def test_ci_only_outside_ci(self, git_workspace, run_git):
        """ci_only git steps are skipped locally."""
        orchestrator = _orchestrator(
            git_workspace,
            repo=GitRepository(git_workspace),
            git=GitConfig(tag=True, ci_only=True),
        )

        outcome = orchestrator.release_project("api", ReleaseOptions(version="1.3.0"))

        assert outcome.status == OutcomeStatus.RELEASED
        assert "api@1.3.0" not in run_git(git_workspace, "tag", "--list")

    def test_ci_only_in_ci(self, git_workspace, run_git):
        """ci_only git steps run in CI."""
        orchestrator = _orchestrator(
            git_workspace,
            repo=GitRepository(git_workspace),
            env={"GITHUB_ACTIONS": "true"},
            git=GitConfig(tag=True, ci_only=True),
        )

        outcome = orchestrator.release_project("api", ReleaseOptions(version="1.3.0"))

        assert outcome.tag == "api@1.3.0"
        assert "api@1.3.0" in run_git(git_workspace, "tag", "--list")
