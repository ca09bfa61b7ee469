"""Artifact publishing to npm, Nexus, S3 and custom HTTP registries."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from monorelease.config.models import CustomConfig, NexusConfig, NpmConfig, S3Config
from monorelease.exceptions import ConfigurationError
from monorelease.publish.base import BasePublisher, Publisher, UploadResult, derive_key
from monorelease.publish.http import CustomPublisher, NexusPublisher
from monorelease.publish.npm import NpmPublisher
from monorelease.publish.s3 import S3Publisher

__all__ = [
    "BasePublisher",
    "CustomPublisher",
    "NexusPublisher",
    "NpmPublisher",
    "Publisher",
    "S3Publisher",
    "UploadResult",
    "derive_key",
    "get_publisher",
    "publish",
]


def get_publisher(config: Any, **kwargs: Any) -> BasePublisher:
    """Publisher for a registry configuration.

    Extra keyword arguments (``client``, ``runner``) are passed to the
    backend, mainly so tests can inject fakes.
    """
    match config:
        case NpmConfig():
            return NpmPublisher(config, **kwargs)
        case NexusConfig():
            return NexusPublisher(config, **kwargs)
        case S3Config():
            return S3Publisher(config, **kwargs)
        case CustomConfig():
            return CustomPublisher(config, **kwargs)
    raise ConfigurationError(f"Unsupported registry configuration: {type(config).__name__}")


def publish(
    artifact: Path,
    version: str,
    config: Any,
    *,
    env: Mapping[str, str] | None = None,
    **kwargs: Any,
) -> UploadResult:
    """Publish ``artifact`` as ``version`` to the configured registry.

    Unset registry settings are filled from the environment first.

    Raises:
        ProjectError: If the artifact does not exist
        ConfigurationError: If required registry settings are missing
        UploadError: If the registry rejects the upload
    """
    config = config.with_environment(env)
    with get_publisher(config, **kwargs) as publisher:
        return publisher.publish(Path(artifact), version)
