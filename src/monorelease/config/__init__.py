"""Configuration management for monorelease."""

from __future__ import annotations

from monorelease.config.loader import load_config, resolve_project_config
from monorelease.config.models import (
    ChangelogConfig,
    CustomConfig,
    GitConfig,
    MonoReleaseConfig,
    NexusConfig,
    NpmConfig,
    ProjectConfig,
    RegistryConfig,
    ReleaseGroupConfig,
    ResolvedProjectConfig,
    S3Config,
)

__all__ = [
    "ChangelogConfig",
    "CustomConfig",
    "GitConfig",
    "MonoReleaseConfig",
    "NexusConfig",
    "NpmConfig",
    "ProjectConfig",
    "RegistryConfig",
    "ReleaseGroupConfig",
    "ResolvedProjectConfig",
    "S3Config",
    "load_config",
    "resolve_project_config",
]
