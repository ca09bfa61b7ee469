"""Markdown changelog rendering.

Rendering is a pure function of the parsed commits and the options; the
only side effect in this module is ``write_changelog``. Output layout::

    ## [1.3.0](https://host/owner/repo/compare/api@1.2.0...api@1.3.0) (2024-05-01)

    ### ⚠ BREAKING CHANGES

    * **api:** drop v1 endpoints ([abc1234](https://host/owner/repo/commit/abc1234...))

    ### Features

    * **api:** add search (def5678)
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from pathlib import Path

from monorelease.core.commits import (
    ParsedCommit,
    commit_type_title,
    group_commits_by_type,
    partition_breaking,
)
from monorelease.exceptions import ChangelogError

NO_CHANGES = "### No changes\n"
BREAKING_HEADING = "### ⚠ BREAKING CHANGES"
GLOBAL_HEADING = "## Global Changes"

_SCP_URL_RE = re.compile(r"^(?:[\w.-]+@)?([\w.-]+):(?!//)(.+)$")


@dataclass(frozen=True)
class ChangelogOptions:
    """Rendering options. Everything is optional."""

    version: str | None = None
    date: str | None = None
    project_name: str | None = None
    repository_url: str | None = None
    compare_url: str | None = None


def normalize_repository_url(url: str | None) -> str | None:
    """Browsable HTTPS form of a git remote URL.

    >>> normalize_repository_url("git@github.com:owner/repo.git")
    'https://github.com/owner/repo'
    >>> normalize_repository_url("https://gitlab.com/owner/repo.git")
    'https://gitlab.com/owner/repo'
    """
    if not url:
        return None

    url = url.strip()
    if url.startswith("ssh://"):
        url = "https://" + url.removeprefix("ssh://").split("@", 1)[-1]
    elif "://" not in url:
        match = _SCP_URL_RE.match(url)
        if match:
            url = f"https://{match.group(1)}/{match.group(2)}"

    return url.rstrip("/").removesuffix(".git")


def compare_url(repository_url: str | None, from_tag: str | None, to_tag: str) -> str | None:
    """Link comparing two tags, or None without a repository or base tag."""
    repo = normalize_repository_url(repository_url)
    if not repo or not from_tag:
        return None
    return f"{repo}/compare/{from_tag}...{to_tag}"


def format_commit_ref(commit_hash: str, repository_url: str | None = None) -> str:
    short = commit_hash[:7]
    repo = normalize_repository_url(repository_url)
    if repo:
        return f"[{short}]({repo}/commit/{commit_hash})"
    return short


def _bullet(commit: ParsedCommit, message: str, repository_url: str | None) -> str:
    scope = f"**{commit.scope}:** " if commit.scope else ""
    return f"* {scope}{message} ({format_commit_ref(commit.hash, repository_url)})"


def _version_heading(options: ChangelogOptions, level: str) -> str:
    title = f"[{options.version}]({options.compare_url})" if options.compare_url else f"{options.version}"
    if options.date:
        title += f" ({options.date})"
    return f"{level} {title}"


def render_changelog(
    commits: Iterable[ParsedCommit],
    options: ChangelogOptions | None = None,
) -> str:
    """Render the changelog entry of one project.

    Args:
        commits: Parsed commits, in log order
        options: Heading and link options

    Returns:
        Markdown text ending in a newline
    """
    options = options or ChangelogOptions()
    commits = list(commits)
    lines: list[str] = []
    if options.version:
        lines += [_version_heading(options, "##"), ""]

    if not commits:
        return "\n".join([*lines, NO_CHANGES])

    breaking, regular = partition_breaking(commits)
    if breaking:
        lines += [BREAKING_HEADING, ""]
        for pc in breaking:
            lines.append(_bullet(pc, pc.breaking_message or pc.subject, options.repository_url))
        lines.append("")

    for commit_type, group in group_commits_by_type(regular).items():
        lines += [f"### {commit_type_title(commit_type)}", ""]
        for pc in group:
            lines.append(_bullet(pc, pc.subject, options.repository_url))
        lines.append("")

    return "\n".join(lines)


def render_workspace_changelog(
    commits_by_project: Mapping[str, Iterable[ParsedCommit]],
    options: ChangelogOptions | None = None,
) -> str:
    """Render one entry covering every project of the workspace.

    Projects are listed alphabetically, each rendered with
    ``render_changelog``. Commits without a scope (or with ``*``) are
    collected once more under a trailing "Global Changes" section.
    """
    options = options or ChangelogOptions()
    header = ""
    if options.version:
        header = _version_heading(replace(options, compare_url=None), "#") + "\n\n"

    sections = {name: list(commits) for name, commits in commits_by_project.items()}
    if not any(sections.values()):
        return header + NO_CHANGES

    project_options = replace(options, version=None, date=None, compare_url=None)
    blocks: list[str] = []
    for name in sorted(sections):
        if sections[name]:
            body = render_changelog(sections[name], replace(project_options, project_name=name))
            blocks.append(f"## {name}\n\n{body}")

    # Global commits appear in every project's list; keep one per hash.
    global_commits: dict[str, ParsedCommit] = {}
    for commits in sections.values():
        for pc in commits:
            if pc.is_global:
                global_commits.setdefault(pc.hash, pc)

    if global_commits:
        blocks.append(f"{GLOBAL_HEADING}\n\n{render_changelog(global_commits.values(), project_options)}")

    return header + "\n".join(blocks)


def write_changelog(path: Path, content: str, *, prepend: bool = True) -> Path:
    """Write a rendered entry to ``path``.

    With ``prepend`` the entry goes on top of the existing file content.

    Raises:
        ChangelogError: If the file cannot be written
    """
    entry = content if content.endswith("\n") else content + "\n"
    try:
        if prepend and path.is_file():
            existing = path.read_text(encoding="utf-8")
            if existing.strip():
                entry = f"{entry}\n{existing.lstrip()}"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(entry, encoding="utf-8")
    except OSError as e:
        raise ChangelogError(f"Could not write changelog {path}: {e}") from e
    return path
