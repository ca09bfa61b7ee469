"""Conventional commit parsing and classification.

Parses raw commit messages of the form::

    type(scope)!: subject

    body

    BREAKING CHANGE: description

into immutable ParsedCommit records, and decides which commits apply to
a given project of the workspace. Scope-based matching can be overridden
from inside a commit message with bracket annotations:

- ``[skip api,web]`` / ``[skip all]`` excludes the listed projects
- ``[target api]`` / ``[only api]`` restricts the commit to the listed projects
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from monorelease.core.version import BumpType
from monorelease.vcs.git import Commit

COMMIT_TYPE_ORDER = (
    "feat",
    "fix",
    "perf",
    "refactor",
    "docs",
    "style",
    "test",
    "build",
    "ci",
    "chore",
    "revert",
)

COMMIT_TYPE_TITLES = {
    "feat": "Features",
    "fix": "Bug Fixes",
    "perf": "Performance Improvements",
    "refactor": "Code Refactoring",
    "docs": "Documentation",
    "style": "Styles",
    "test": "Tests",
    "build": "Build System",
    "ci": "Continuous Integration",
    "chore": "Chores",
    "revert": "Reverts",
}

_HEADER_RE = re.compile(r"^(\w+)(?:\(([^)]+)\))?(!)?:\s*(\S.*)$")
_BREAKING_RE = re.compile(r"^BREAKING[ -]CHANGE:\s*(.+)$", re.MULTILINE)
_BLANK_LINE_RE = re.compile(r"\n[ \t]*\n")
_SKIP_RE = re.compile(r"\[skip\s+([^\]]+)\]", re.IGNORECASE)
_TARGET_RE = re.compile(r"\[(?:target|only)\s+([^\]]+)\]", re.IGNORECASE)

CommitGroup = dict[str, list["ParsedCommit"]]


@dataclass(frozen=True)
class ParsedCommit:
    """A conventional commit parsed from one raw commit message."""

    hash: str
    type: str
    subject: str
    scope: str | None = None
    body: str | None = None
    breaking: bool = False
    breaking_message: str | None = None
    footer: str | None = None

    @classmethod
    def from_commit(cls, commit: Commit) -> ParsedCommit | None:
        """Parse a raw Commit, returning None if it is not conventional."""
        return parse_conventional_commit(commit.message, commit.sha)

    @property
    def short_hash(self) -> str:
        return self.hash[:7]

    @property
    def scopes(self) -> list[str]:
        """Individual entries of a comma-separated scope."""
        if not self.scope:
            return []
        return [s.strip() for s in self.scope.split(",") if s.strip()]

    @property
    def is_global(self) -> bool:
        """True for commits without a scope or with the wildcard scope."""
        return not self.scope or self.scope == "*"

    @property
    def full_message(self) -> str:
        return f"{self.subject}\n{self.body}" if self.body else self.subject


class AnalysisOutcome(Enum):
    """Outcome of scanning the commits since the last release."""

    NO_COMMITS = "no_commits"
    NOT_AFFECTED = "not_affected"
    NO_CONVENTIONAL = "no_conventional"
    CONVENTIONAL = "conventional"


@dataclass(frozen=True)
class CommitAnalysis:
    """Result of analyze_commits()."""

    outcome: AnalysisOutcome
    bump: BumpType = BumpType.NONE
    relevant: tuple[ParsedCommit, ...] = field(default=())


# =============================================================================
# Parsing
# =============================================================================


def parse_conventional_commit(message: str, hash: str) -> ParsedCommit | None:
    """Parse a full commit message (subject line plus optional body).

    Args:
        message: Raw commit message
        hash: Commit SHA

    Returns:
        ParsedCommit, or None when the first line is not a conventional header
    """
    lines = message.split("\n")
    first_line = lines[0].strip()
    if not first_line:
        return None

    match = _HEADER_RE.match(first_line)
    if match is None:
        return None

    commit_type, scope, bang, subject = match.groups()
    body = "\n".join(lines[1:]).strip()

    breaking_match = _BREAKING_RE.search(body)
    breaking_message = breaking_match.group(1).strip() if breaking_match else None

    footer = None
    parts = _BLANK_LINE_RE.split(body)
    if len(parts) > 1 and parts[-1].strip():
        footer = parts[-1].strip()

    return ParsedCommit(
        hash=hash,
        type=commit_type.lower(),
        scope=scope.strip() if scope and scope.strip() else None,
        subject=subject.strip(),
        body=body or None,
        breaking=bool(bang) or breaking_match is not None,
        breaking_message=breaking_message,
        footer=footer,
    )


def parse_commits(commits: Iterable[Commit]) -> list[ParsedCommit]:
    """Parse raw commits, dropping those that are not conventional."""
    parsed: list[ParsedCommit] = []
    for commit in commits:
        pc = ParsedCommit.from_commit(commit)
        if pc is not None:
            parsed.append(pc)
    return parsed


# =============================================================================
# Project filtering
# =============================================================================


def _split_names(value: str) -> list[str]:
    return [name.strip() for name in value.split(",") if name.strip()]


def extract_overrides(text: str) -> tuple[list[str] | None, list[str] | None]:
    """Return the ``[skip ...]`` and ``[target ...]``/``[only ...]`` project lists.

    Either element is None when the annotation is absent.
    """
    skip_match = _SKIP_RE.search(text)
    target_match = _TARGET_RE.search(text)
    skip = _split_names(skip_match.group(1)) if skip_match else None
    target = _split_names(target_match.group(1)) if target_match else None
    return skip, target


def scope_matches(scope: str | None, project: str) -> bool:
    """Scope-based inclusion: no scope or ``*`` match every project."""
    if not scope:
        return True
    scopes = _split_names(scope)
    return project in scopes or "*" in scopes


def commit_applies_to_project(text: str, scope: str | None, project: str) -> bool:
    """Decide whether a commit applies to ``project``.

    Bracket annotations in ``text`` strictly override scope matching.
    """
    skip, target = extract_overrides(text)
    if skip is not None and (project in skip or any(s.lower() == "all" for s in skip)):
        return False
    if target is not None:
        return project in target
    return scope_matches(scope, project)


def filter_commits_by_scope(
    commits: Iterable[ParsedCommit],
    project: str | None,
) -> list[ParsedCommit]:
    """Keep commits that apply to ``project`` (all of them when project is None)."""
    if not project:
        return list(commits)
    return [pc for pc in commits if commit_applies_to_project(pc.full_message, pc.scope, project)]


def filter_commits_for_project(commits: Iterable[Commit], project: str) -> list[Commit]:
    """Filter raw commits, including non-conventional ones without annotations."""
    relevant: list[Commit] = []
    for commit in commits:
        parsed = ParsedCommit.from_commit(commit)
        scope = parsed.scope if parsed else None
        if commit_applies_to_project(commit.message, scope, project):
            relevant.append(commit)
    return relevant


# =============================================================================
# Classification
# =============================================================================


def calculate_bump(
    commits: Iterable[ParsedCommit],
    minor_types: Sequence[str] = ("feat",),
    patch_types: Sequence[str] = ("fix",),
) -> BumpType:
    """Strongest bump signalled by a list of conventional commits."""
    bump = BumpType.NONE
    for pc in commits:
        if pc.breaking:
            return BumpType.MAJOR
        if pc.type in minor_types:
            bump = BumpType.MINOR
        elif pc.type in patch_types and bump == BumpType.NONE:
            bump = BumpType.PATCH
    return bump


def analyze_commits(
    commits: Sequence[Commit],
    project: str,
    *,
    affected: bool = True,
    minor_types: Sequence[str] = ("feat",),
    patch_types: Sequence[str] = ("fix",),
) -> CommitAnalysis:
    """Scan the commits since the last release of ``project``.

    Args:
        commits: Raw commits since the last matching tag
        project: Project being versioned
        affected: Result of the external affected-project computation
        minor_types: Commit types that trigger a minor bump
        patch_types: Commit types that trigger a patch bump

    Returns:
        CommitAnalysis describing which branch of the decision table applies
    """
    if not commits:
        return CommitAnalysis(AnalysisOutcome.NO_COMMITS)

    if not affected:
        return CommitAnalysis(AnalysisOutcome.NOT_AFFECTED)

    relevant = parse_commits(filter_commits_for_project(commits, project))
    bump = calculate_bump(relevant, minor_types, patch_types)

    if bump == BumpType.NONE:
        return CommitAnalysis(AnalysisOutcome.NO_CONVENTIONAL, BumpType.NONE, tuple(relevant))
    return CommitAnalysis(AnalysisOutcome.CONVENTIONAL, bump, tuple(relevant))


# =============================================================================
# Grouping
# =============================================================================


def partition_breaking(
    commits: Iterable[ParsedCommit],
) -> tuple[list[ParsedCommit], list[ParsedCommit]]:
    """Split commits into (breaking, regular), keeping log order."""
    breaking: list[ParsedCommit] = []
    regular: list[ParsedCommit] = []
    for pc in commits:
        (breaking if pc.breaking else regular).append(pc)
    return breaking, regular


def group_commits_by_type(commits: Iterable[ParsedCommit]) -> CommitGroup:
    """Group commits by type in canonical order.

    Known types come first in COMMIT_TYPE_ORDER; other types follow in the
    order they were first seen. Commits keep their log order within a group.
    """
    seen: CommitGroup = {}
    for pc in commits:
        seen.setdefault(pc.type, []).append(pc)

    grouped: CommitGroup = {t: seen[t] for t in COMMIT_TYPE_ORDER if t in seen}
    for commit_type, items in seen.items():
        if commit_type not in grouped:
            grouped[commit_type] = items
    return grouped


def commit_type_title(commit_type: str) -> str:
    """Display title for a commit type section."""
    return COMMIT_TYPE_TITLES.get(commit_type, commit_type[:1].upper() + commit_type[1:])


def summarize_commits(commits: Sequence[ParsedCommit]) -> str:
    """Compact one-line summary, e.g. ``"1 breaking, 2 features, 1 fixes"``."""
    if not commits:
        return "No changes"

    breaking = sum(1 for pc in commits if pc.breaking)
    features = sum(1 for pc in commits if pc.type == "feat" and not pc.breaking)
    fixes = sum(1 for pc in commits if pc.type == "fix" and not pc.breaking)
    other = len(commits) - breaking - features - fixes

    parts = []
    if breaking:
        parts.append(f"{breaking} breaking")
    if features:
        parts.append(f"{features} features")
    if fixes:
        parts.append(f"{fixes} fixes")
    if other > 0:
        parts.append(f"{other} other")
    return ", ".join(parts)
