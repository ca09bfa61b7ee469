"""Release pipeline orchestration."""

from __future__ import annotations

from monorelease.release.build import BuildRunner, CommandBuildRunner
from monorelease.release.orchestrator import (
    BatchResult,
    OutcomeStatus,
    ProjectOutcome,
    ReleaseOptions,
    ReleaseOrchestrator,
    should_skip_project,
)

__all__ = [
    "BatchResult",
    "BuildRunner",
    "CommandBuildRunner",
    "OutcomeStatus",
    "ProjectOutcome",
    "ReleaseOptions",
    "ReleaseOrchestrator",
    "should_skip_project",
]
