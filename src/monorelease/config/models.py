"""Pydantic models for monorelease configuration.

Configuration is read from ``[tool.monorelease]`` in the workspace
pyproject.toml::

    [tool.monorelease]
    version_files = ["package.json"]

    [tool.monorelease.release_groups.backend]
    projects = ["api", "worker-*"]
    relationship = "fixed"

    [tool.monorelease.release_groups.backend.registry]
    type = "nexus"
    url = "https://nexus.example.com"
    repository = "raw-releases"

    [tool.monorelease.projects.api]
    root = "packages/api"
    dependencies = ["shared"]

Registry credentials are usually left out of the file and picked up from
the environment (see ``with_environment``).
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Annotated, ClassVar, Literal, Self

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, HttpUrl, TypeAdapter, ValidationError

from monorelease.exceptions import ConfigValidationError

Relationship = Literal["independent", "fixed"]
PathStrategy = Literal["version", "hash", "flat"]
SyncStrategy = Literal["bump", "highest"]

DEFAULT_VERSION_FILES = ["project.json", "package.json"]
DEFAULT_DIST_DIR = "dist/{projectName}"

_HTTP_URL = TypeAdapter(HttpUrl)


def _check_http_url(value: str | None) -> str | None:
    if value:
        try:
            _HTTP_URL.validate_python(value)
        except ValidationError as e:
            raise ValueError(f"not a valid http(s) URL: {value!r}") from e
    return value


RegistryUrl = Annotated[str, AfterValidator(_check_http_url)]


# =============================================================================
# Registries
# =============================================================================


class _RegistryBase(BaseModel):
    """Settings shared by every registry backend."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    # Fields that must be non-empty before any network call is made.
    required_fields: ClassVar[tuple[str, ...]] = ()
    # Environment variables consulted for fields left out of the file.
    env_fallbacks: ClassVar[dict[str, str]] = {}

    path_strategy: PathStrategy = "version"
    prefix: str = ""
    skip_existing: bool = True
    probe_timeout: float = Field(default=10.0, gt=0)
    upload_timeout: float = Field(default=60.0, gt=0)

    def missing_fields(self) -> list[str]:
        """Required fields that are unset or empty."""
        return [name for name in self.required_fields if not getattr(self, name)]

    def with_environment(self, env: Mapping[str, str] | None = None) -> Self:
        """Copy of this config with unset fields filled from the environment."""
        env = os.environ if env is None else env
        updates = {
            name: env[variable]
            for name, variable in self.env_fallbacks.items()
            if not getattr(self, name) and env.get(variable)
        }
        if not updates:
            return self
        try:
            return self.model_validate({**self.model_dump(), **updates})
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise ConfigValidationError(f"Invalid registry settings from the environment: {fields}") from e


class NpmConfig(_RegistryBase):
    """npm-compatible package registry, published through the npm CLI."""

    required_fields: ClassVar[tuple[str, ...]] = ("package_name",)
    env_fallbacks: ClassVar[dict[str, str]] = {"otp": "NPM_OTP"}

    type: Literal["npm"] = "npm"
    package_name: str | None = None
    registry_url: RegistryUrl = "https://registry.npmjs.org"
    dist_tag: str = "latest"
    access: Literal["public", "restricted"] = "public"
    otp: str | None = None


class NexusConfig(_RegistryBase):
    """Nexus Repository Manager raw repository."""

    required_fields: ClassVar[tuple[str, ...]] = ("url", "repository", "username", "password")
    env_fallbacks: ClassVar[dict[str, str]] = {
        "url": "NEXUS_URL",
        "repository": "NEXUS_REPOSITORY",
        "username": "NEXUS_USERNAME",
        "password": "NEXUS_PASSWORD",
    }

    type: Literal["nexus"] = "nexus"
    url: RegistryUrl | None = None
    repository: str | None = None
    username: str | None = None
    password: str | None = None


class S3Config(_RegistryBase):
    """AWS S3 bucket.

    Without explicit keys boto3's default credential chain is used
    (environment, shared config, IAM role or web identity).
    """

    required_fields: ClassVar[tuple[str, ...]] = ("bucket", "region")
    env_fallbacks: ClassVar[dict[str, str]] = {
        "bucket": "S3_BUCKET",
        "region": "AWS_REGION",
        "prefix": "S3_PREFIX",
    }

    type: Literal["s3"] = "s3"
    bucket: str | None = None
    region: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None
    session_token: str | None = None
    endpoint_url: str | None = None


class CustomConfig(_RegistryBase):
    """Generic HTTP endpoint accepting PUT uploads."""

    required_fields: ClassVar[tuple[str, ...]] = ("url",)
    env_fallbacks: ClassVar[dict[str, str]] = {
        "url": "REGISTRY_URL",
        "token": "REGISTRY_TOKEN",
    }

    type: Literal["custom"] = "custom"
    url: RegistryUrl | None = None
    username: str | None = None
    password: str | None = None
    token: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)


RegistryConfig = Annotated[
    NpmConfig | NexusConfig | S3Config | CustomConfig,
    Field(discriminator="type"),
]


# =============================================================================
# Changelog and git
# =============================================================================


class ChangelogConfig(BaseModel):
    """Changelog file generation."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: bool = True
    file: str = "CHANGELOG.md"
    repository_url: str | None = None
    include_date: bool = True


class GitConfig(BaseModel):
    """Git steps of a release. All mutating steps are opt-in."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    commit: bool = False
    tag: bool = False
    push: bool = False
    remote: str = "origin"
    commit_message: str = "chore(release): {projectName} {version}"
    ci_only: bool = False


# =============================================================================
# Groups and projects
# =============================================================================


class ReleaseGroupConfig(BaseModel):
    """A named set of projects sharing one versioning policy."""

    model_config = ConfigDict(extra="forbid")

    projects: list[str] = Field(default_factory=list)
    relationship: Relationship | None = None
    version_files: list[str] | None = None
    version_path: str | None = None
    tag_format: str | None = None
    registry: RegistryConfig | None = None
    sync_strategy: SyncStrategy = "bump"
    primary: str | None = None


class ProjectConfig(BaseModel):
    """Workspace entry for a single project.

    Every field except ``root`` and ``dependencies`` overrides the release
    group and workspace defaults when set.
    """

    model_config = ConfigDict(extra="forbid")

    root: str | None = None
    dependencies: list[str] = Field(default_factory=list)
    release_group: str | None = None
    relationship: Relationship | None = None
    version_files: list[str] | None = None
    version_path: str | None = None
    tag_format: str | None = None
    tag_prefix: str | None = None
    tag_suffix: str | None = None
    registry: RegistryConfig | None = None
    changelog: ChangelogConfig | None = None
    git: GitConfig | None = None
    build_target: str | None = None
    dist_dir: str | None = None
    artifact: str | None = None
    first_release: bool | None = None


class MonoReleaseConfig(BaseModel):
    """Root ``[tool.monorelease]`` configuration (workspace defaults)."""

    model_config = ConfigDict(extra="forbid")

    relationship: Relationship = "fixed"
    version_files: list[str] = Field(default_factory=lambda: list(DEFAULT_VERSION_FILES))
    version_path: str = "version"
    tag_format: str | None = None
    tag_prefix: str = ""
    tag_suffix: str = ""
    registry: RegistryConfig | None = None
    changelog: ChangelogConfig = Field(default_factory=ChangelogConfig)
    git: GitConfig = Field(default_factory=GitConfig)
    build_target: str | None = "build"
    build_command: str | None = None
    dist_dir: str = DEFAULT_DIST_DIR
    artifact: str | None = None
    first_release: bool = False
    track_deps: bool = False
    max_workers: int = Field(default=4, ge=1)
    commit_types_minor: list[str] = Field(default_factory=lambda: ["feat"])
    commit_types_patch: list[str] = Field(default_factory=lambda: ["fix"])
    release_groups: dict[str, ReleaseGroupConfig] = Field(default_factory=dict)
    projects: dict[str, ProjectConfig] = Field(default_factory=dict)

    @property
    def project_names(self) -> list[str]:
        return sorted(self.projects)

    @property
    def dependency_map(self) -> dict[str, list[str]]:
        """Project name to internal dependency names, as configured."""
        return {name: list(project.dependencies) for name, project in self.projects.items()}

    @property
    def project_roots(self) -> dict[str, str]:
        return {name: project.root or name for name, project in self.projects.items()}


class ResolvedProjectConfig(BaseModel):
    """Effective, immutable configuration of one project.

    Produced by ``resolve_project_config`` after all layers are merged.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    root: Path
    release_group: str | None = None
    relationship: Relationship = "fixed"
    version_files: tuple[str, ...] = tuple(DEFAULT_VERSION_FILES)
    version_path: str = "version"
    tag_format: str | None = None
    tag_prefix: str = ""
    tag_suffix: str = ""
    registry: RegistryConfig | None = None
    changelog: ChangelogConfig = ChangelogConfig()
    git: GitConfig = GitConfig()
    build_target: str | None = "build"
    dist_dir: str = DEFAULT_DIST_DIR
    artifact: str | None = None
    first_release: bool = False
    dependencies: tuple[str, ...] = ()
    commit_types_minor: tuple[str, ...] = ("feat",)
    commit_types_patch: tuple[str, ...] = ("fix",)

    @property
    def effective_dist_dir(self) -> str:
        return self.dist_dir.replace("{projectName}", self.name)

    @property
    def changelog_path(self) -> Path:
        return self.root / self.changelog.file
