"""Version control helpers."""

from __future__ import annotations

from monorelease.vcs.ci import ci_platform, is_ci
from monorelease.vcs.git import GIT_LOG_FORMAT, Commit, GitRepository, parse_log_output

__all__ = [
    "GIT_LOG_FORMAT",
    "Commit",
    "GitRepository",
    "ci_platform",
    "is_ci",
    "parse_log_output",
]
