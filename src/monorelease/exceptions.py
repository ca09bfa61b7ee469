"""Exception hierarchy for monorelease.

All errors raised by the release engine derive from MonoReleaseError so
callers at the project boundary can convert them into a structured
outcome with a single ``except`` clause.

- ConfigurationError: missing or invalid configuration, bad semver input,
  no readable version source
- AmbiguousIntentError: nothing to release and no explicit intent given
- GitOperationError: a git command failed
- UploadError: a registry rejected or never answered an upload
"""

from __future__ import annotations


class MonoReleaseError(Exception):
    """Base exception for all monorelease errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# =============================================================================
# Configuration
# =============================================================================


class ConfigurationError(MonoReleaseError):
    """Configuration is missing, incomplete or invalid."""

    def __init__(self, message: str, missing_fields: list[str] | None = None) -> None:
        super().__init__(message)
        self.missing_fields = missing_fields or []


class ConfigNotFoundError(ConfigurationError):
    """No pyproject.toml could be located."""


class ConfigValidationError(ConfigurationError):
    """Configuration values failed validation."""


class InvalidVersionError(ConfigurationError):
    """A version string is not valid semantic versioning."""


class VersionNotFoundError(ConfigurationError):
    """No candidate version file yields a version."""


# =============================================================================
# Version resolution
# =============================================================================


class AmbiguousIntentError(MonoReleaseError):
    """No commits since the last release and no explicit version or bump."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or (
                "No commits found since last release.\n"
                "To create a release anyway, use:\n"
                "  --release-as=patch/minor/major  (specify bump type)\n"
                "  --version=x.y.z  (set explicit version)"
            )
        )


class ProjectError(MonoReleaseError):
    """A project file or artifact is missing or cannot be updated."""


class ChangelogError(MonoReleaseError):
    """Changelog could not be rendered or written."""


class BuildError(MonoReleaseError):
    """The external build step reported failure."""


# =============================================================================
# Git and registries
# =============================================================================


class GitOperationError(MonoReleaseError):
    """A git command failed."""

    def __init__(self, message: str, stderr: str | None = None) -> None:
        super().__init__(message)
        self.stderr = stderr

    def __str__(self) -> str:
        if self.stderr:
            return f"{self.message}\n{self.stderr.strip()}"
        return self.message


class UploadError(MonoReleaseError):
    """Artifact upload failed (network, authentication or registry error)."""

    def __init__(
        self,
        message: str,
        *,
        registry: str | None = None,
        status_code: int | None = None,
        request_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.registry = registry
        self.status_code = status_code
        self.request_id = request_id

    def __str__(self) -> str:
        parts = [self.message]
        if self.status_code is not None:
            parts.append(f"HTTP Status: {self.status_code}")
        if self.request_id:
            parts.append(f"Request ID: {self.request_id}")
        return "\n".join(parts)
