"""Shared publish protocol.

Every backend follows the same steps:

1. validate preconditions (artifact exists, required settings present)
   before touching the network
2. derive the storage key from the path strategy
3. probe the key unless ``skip_existing`` is off; an existing artifact is
   reported as skipped and never uploaded again
4. upload with integrity metadata

A failing probe other than "not found" is logged and the upload is
attempted anyway: the upload response is what decides success.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, Protocol, Self

import structlog

from monorelease.exceptions import ConfigurationError, ProjectError
from monorelease.publish.checksum import file_checksum

logger = structlog.get_logger(__name__)

_CONTENT_TYPES = {
    ".tgz": "application/gzip",
    ".gz": "application/gzip",
    ".tar": "application/x-tar",
    ".zip": "application/zip",
    ".json": "application/json",
    ".xml": "application/xml",
    ".txt": "text/plain",
}


@dataclass(frozen=True)
class UploadResult:
    """Result of one publish call."""

    uploaded: bool
    url: str
    skipped: bool = False
    reason: str | None = None
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @classmethod
    def from_error(cls, error: Exception | str, url: str = "") -> UploadResult:
        return cls(uploaded=False, url=url, error=str(error))


class Publisher(Protocol):
    """Anything that can push an artifact to a registry."""

    registry_type: str

    def publish(self, artifact: Path, version: str) -> UploadResult: ...

    def __enter__(self) -> Publisher: ...

    def __exit__(self, *exc_info: object) -> None: ...


def derive_key(artifact: Path, version: str, strategy: str, prefix: str = "") -> str:
    """Storage key of ``artifact`` under a path strategy.

    - ``version``: ``{prefix}{version}/{filename}``
    - ``hash``: ``{prefix}{sha1}/{filename}``
    - ``flat``: ``{prefix}{filename}``

    Raises:
        ConfigurationError: For an unknown strategy or a missing version
    """
    filename = artifact.name
    if strategy == "version":
        if not version:
            raise ConfigurationError("Version is required when using version-based path strategy")
        return f"{prefix}{version}/{filename}"
    if strategy == "hash":
        return f"{prefix}{file_checksum(artifact, 'sha1')}/{filename}"
    if strategy == "flat":
        return f"{prefix}{filename}"
    raise ConfigurationError(f"Invalid path strategy: {strategy}. Valid options: version, hash, flat")


def content_type_for(filename: str) -> str:
    if filename.endswith(".tar.gz"):
        return "application/gzip"
    return _CONTENT_TYPES.get(Path(filename).suffix.lower(), "application/octet-stream")


def validate_preconditions(artifact: Path, config, registry_type: str) -> None:
    """Checks made before any network call.

    Raises:
        ProjectError: If the artifact file does not exist
        ConfigurationError: If required registry settings are missing
    """
    if not artifact.is_file():
        raise ProjectError(f"Artifact file not found: {artifact}")

    missing = config.missing_fields()
    if missing:
        raise ConfigurationError(
            f"{registry_type} configuration incomplete. Missing required fields: {', '.join(missing)}",
            missing_fields=missing,
        )


class BasePublisher(ABC):
    """Template for registry backends.

    Subclasses provide ``location``, ``exists`` and ``upload``.
    ``exists`` returns False only for a definite "not found" and raises one
    of ``probe_errors`` for anything it could not decide.

    Publishers are context managers; leaving the block closes their
    connections.
    """

    registry_type: ClassVar[str] = ""
    probe_errors: ClassVar[tuple[type[Exception], ...]] = ()

    def __init__(self, config) -> None:
        self.config = config

    def close(self) -> None:
        """Release network resources held by the backend."""

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @abstractmethod
    def location(self, key: str, version: str) -> str:
        """Human-readable address of the uploaded artifact."""

    @abstractmethod
    def exists(self, key: str, version: str) -> bool: ...

    @abstractmethod
    def upload(self, artifact: Path, key: str, version: str) -> None:
        """Upload ``artifact``, raising UploadError on failure."""

    def publish(self, artifact: Path, version: str) -> UploadResult:
        artifact = Path(artifact)
        validate_preconditions(artifact, self.config, self.registry_type)

        key = derive_key(artifact, version, self.config.path_strategy, self.config.prefix)
        url = self.location(key, version)
        log = logger.bind(registry=self.registry_type, url=url, artifact=artifact.name)

        if self.config.skip_existing:
            try:
                if self.exists(key, version):
                    log.info("artifact_exists_skipping")
                    return UploadResult(
                        uploaded=False,
                        url=url,
                        skipped=True,
                        reason=f"File already exists in {self.registry_type}",
                    )
            except self.probe_errors as e:
                log.warning("probe_failed_uploading_anyway", error=str(e))

        log.info("artifact_uploading", version=version)
        self.upload(artifact, key, version)
        log.info("artifact_uploaded")
        return UploadResult(uploaded=True, url=url)
