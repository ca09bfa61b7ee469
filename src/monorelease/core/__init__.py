"""Core release logic.

- Version parsing and bumping (semver)
- Conventional commit classification
- Version resolution for single projects and whole workspaces
- Changelog rendering
- Tag naming
"""

from __future__ import annotations

from monorelease.core.changelog import ChangelogOptions, render_changelog, render_workspace_changelog
from monorelease.core.commits import (
    AnalysisOutcome,
    ParsedCommit,
    analyze_commits,
    calculate_bump,
    filter_commits_by_scope,
    parse_commits,
    parse_conventional_commit,
)
from monorelease.core.resolver import ResolutionStatus, VersionResult, resolve_version, resolve_workspace
from monorelease.core.tags import generate_tag_name, tag_match_pattern
from monorelease.core.version import BumpType, Version, parse_version

__all__ = [
    "AnalysisOutcome",
    "BumpType",
    "ChangelogOptions",
    "ParsedCommit",
    "ResolutionStatus",
    "Version",
    "VersionResult",
    "analyze_commits",
    "calculate_bump",
    "filter_commits_by_scope",
    "generate_tag_name",
    "parse_commits",
    "parse_conventional_commit",
    "parse_version",
    "render_changelog",
    "render_workspace_changelog",
    "resolve_version",
    "resolve_workspace",
    "tag_match_pattern",
]
