"""Git repository access.

Thin subprocess layer over the git CLI providing exactly what the release
engine needs: commit history since a tag, tag lookup, changed files, and
the stage/commit/tag/push steps of a release. Every failing command raises
GitOperationError carrying git's stderr.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import structlog

from monorelease.exceptions import GitOperationError

logger = structlog.get_logger(__name__)

# Format consumed by parse_log_output(): "<sha>|<subject>\n<body>\0".
# Records end in NUL, which commit messages cannot contain.
GIT_LOG_FORMAT = "%H|%s%n%b%x00"
LOG_BLOCK_SEPARATOR = "\0"


@dataclass(frozen=True)
class Commit:
    """A raw commit as read from the log."""

    sha: str
    message: str
    author_name: str = ""
    author_email: str = ""
    date: datetime | None = None

    @property
    def subject(self) -> str:
        return self.message.split("\n", 1)[0].strip()


def parse_log_output(output: str) -> list[Commit]:
    """Split ``git log --format=GIT_LOG_FORMAT`` output into raw commits.

    Blocks without a ``sha|subject`` first line are ignored.
    """
    commits: list[Commit] = []
    for block in output.split(LOG_BLOCK_SEPARATOR):
        block = block.strip()
        if not block:
            continue

        first_line, _, rest = block.partition("\n")
        sha, sep, subject = first_line.partition("|")
        if not sep or not sha.strip():
            continue

        message = subject.strip()
        if rest.strip():
            message += "\n\n" + rest.strip()
        commits.append(Commit(sha=sha.strip(), message=message))

    return commits


class GitRepository:
    """A git working tree."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).resolve()
        toplevel = self._run("rev-parse", "--show-toplevel")
        self.root = Path(toplevel).resolve()

    def _run(self, *args: str, check: bool = True) -> str:
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=self.path,
                capture_output=True,
                text=True,
                check=check,
            )
        except FileNotFoundError as e:
            raise GitOperationError("git executable not found on PATH") from e
        except subprocess.CalledProcessError as e:
            raise GitOperationError(
                f"git {args[0]} failed with exit code {e.returncode}",
                stderr=e.stderr,
            ) from e
        return result.stdout.strip()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def is_dirty(self) -> bool:
        return bool(self._run("status", "--porcelain"))

    def head_sha(self) -> str:
        return self._run("rev-parse", "HEAD")

    def get_tags(self, patterns: list[str] | str | None = None) -> list[str]:
        """Tags matching the glob patterns, highest version first."""
        if isinstance(patterns, str):
            patterns = [patterns]
        output = self._run("tag", "--list", "--sort=-version:refname", *(patterns or []))
        return [line.strip() for line in output.splitlines() if line.strip()]

    def get_latest_tag(self, patterns: list[str] | str | None = None) -> str | None:
        """Most recent tag (by version order) matching any of the patterns."""
        tags = self.get_tags(patterns)
        return tags[0] if tags else None

    def tag_exists(self, name: str) -> bool:
        return bool(self._run("tag", "--list", name))

    def get_log_text(self, since: str | None = None, until: str = "HEAD") -> str:
        """Raw ``git log`` text in GIT_LOG_FORMAT, merges excluded."""
        args = ["log", f"--format={GIT_LOG_FORMAT}", "--no-merges"]
        args.append(f"{since}..{until}" if since else until)
        try:
            return self._run(*args)
        except GitOperationError as e:
            # A repository without any commit has no history to read.
            if e.stderr and "does not have any commits" in e.stderr:
                return ""
            raise

    def get_commits_since_tag(self, tag: str | None) -> list[Commit]:
        """Commits reachable from HEAD but not from ``tag`` (all when None)."""
        return parse_log_output(self.get_log_text(tag))

    def get_changed_files(self, since: str | None) -> list[str]:
        """Paths changed between ``since`` and HEAD, relative to the repo root.

        Without a base every tracked file counts as changed.
        """
        if since is None:
            output = self._run("ls-files")
        else:
            output = self._run("diff", "--name-only", f"{since}..HEAD")
        return [line for line in output.splitlines() if line.strip()]

    def get_remote_url(self, remote: str = "origin") -> str | None:
        """URL of ``remote``, or None when it is not configured."""
        url = self._run("config", "--get", f"remote.{remote}.url", check=False)
        return url or None

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def add(self, paths: list[Path | str]) -> None:
        if paths:
            self._run("add", "--", *(str(p) for p in paths))

    def commit(self, message: str, extra_args: list[str] | None = None) -> None:
        self._run("commit", "-m", message, *(extra_args or []))
        logger.info("git_commit_created", message=message.splitlines()[0])

    def tag(self, name: str, message: str | None = None) -> bool:
        """Create a tag at HEAD.

        Returns:
            True if the tag was created, False if it already existed
        """
        if self.tag_exists(name):
            logger.info("git_tag_exists", tag=name)
            return False

        if message:
            self._run("tag", "-a", name, "-m", message)
        else:
            self._run("tag", name)
        logger.info("git_tag_created", tag=name)
        return True

    def push(self, remote: str = "origin", follow_tags: bool = True) -> None:
        args = ["push", remote]
        if follow_tags:
            args.append("--follow-tags")
        self._run(*args)
        logger.info("git_pushed", remote=remote)
