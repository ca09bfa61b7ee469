"""Tests for git repository access."""

from __future__ import annotations

import pytest

from monorelease.exceptions import GitOperationError
from monorelease.vcs.git import GIT_LOG_FORMAT, Commit, GitRepository, parse_log_output


class TestParseLogOutput:
    """Tests for parse_log_output()."""

    def test_subject_and_body(self):
        """Bodies are joined to the subject with a blank line."""
        output = "abc123|feat: add x\nlonger body\n\nBREAKING CHANGE: y\n\0\ndef456|fix: z\n\n\0\n"

        commits = parse_log_output(output)

        assert commits == [
            Commit(sha="abc123", message="feat: add x\n\nlonger body\n\nBREAKING CHANGE: y"),
            Commit(sha="def456", message="fix: z"),
        ]
        assert commits[0].subject == "feat: add x"

    def test_subject_with_pipe(self):
        """Only the first pipe separates the hash."""
        assert parse_log_output("abc|feat: a | b\n\0")[0].message == "feat: a | b"

    def test_garbage_ignored(self):
        """Blocks without a hash are dropped."""
        assert parse_log_output("no separator here\n\0\n\n") == []

    def test_body_containing_old_marker(self):
        """Marker-like text inside a body does not split the commit."""
        output = "abc|docs: explain format\nRecords used to end with\n===END===\nin older tools.\n\0\n"

        commits = parse_log_output(output)

        assert len(commits) == 1
        assert "===END===" in commits[0].message

    def test_format_matches_separator(self):
        assert GIT_LOG_FORMAT.endswith("%x00")


class TestGitRepository:
    """Tests for GitRepository against a real repository."""

    def test_empty_repository(self, temp_git_repo):
        """A repository without commits has no history and no tags."""
        repo = GitRepository(temp_git_repo)

        assert repo.root == temp_git_repo.resolve()
        assert repo.get_commits_since_tag(None) == []
        assert repo.get_latest_tag("*") is None

    def test_commits_since_tag(self, temp_git_repo, commit_file, run_git):
        """Only commits after the tag are returned, newest first."""
        commit_file(temp_git_repo, "a.txt", "a", "chore: init")
        run_git(temp_git_repo, "tag", "api@1.0.0")
        commit_file(temp_git_repo, "b.txt", "b", "feat(api): add b")
        commit_file(temp_git_repo, "c.txt", "c", "fix(api): fix c")
        repo = GitRepository(temp_git_repo)

        commits = repo.get_commits_since_tag("api@1.0.0")

        assert [c.subject for c in commits] == ["fix(api): fix c", "feat(api): add b"]
        assert len(repo.get_commits_since_tag(None)) == 3
        assert commits[0].sha == repo.head_sha()

    def test_latest_tag_by_version(self, temp_git_repo, commit_file, run_git):
        """Tags sort by version, not alphabetically, and patterns filter projects."""
        commit_file(temp_git_repo, "a.txt", "a", "chore: init")
        for tag in ("api@1.9.0", "api@1.10.0", "web@2.0.0"):
            run_git(temp_git_repo, "tag", tag)
        repo = GitRepository(temp_git_repo)

        assert repo.get_latest_tag("api@*") == "api@1.10.0"
        assert repo.get_tags(["web@*"]) == ["web@2.0.0"]

    def test_changed_files(self, temp_git_repo, commit_file, run_git):
        """Changed paths are relative to the repository root."""
        commit_file(temp_git_repo, "libs/core/a.ts", "a", "chore: init")
        run_git(temp_git_repo, "tag", "v1.0.0")
        commit_file(temp_git_repo, "apps/api/b.ts", "b", "feat(api): b")
        repo = GitRepository(temp_git_repo)

        assert repo.get_changed_files("v1.0.0") == ["apps/api/b.ts"]
        assert sorted(repo.get_changed_files(None)) == ["apps/api/b.ts", "libs/core/a.ts"]

    def test_commit_and_tag(self, temp_git_repo, commit_file):
        """Staged files are committed; tagging twice is a no-op."""
        commit_file(temp_git_repo, "a.txt", "a", "chore: init")
        repo = GitRepository(temp_git_repo)
        (temp_git_repo / "a.txt").write_text("b")

        assert repo.is_dirty()
        repo.add([temp_git_repo / "a.txt"])
        repo.commit("chore(release): api 1.0.1")

        assert not repo.is_dirty()
        assert repo.tag("api@1.0.1", message="Release api@1.0.1") is True
        assert repo.tag("api@1.0.1") is False
        assert repo.tag_exists("api@1.0.1")

    def test_remote_url(self, temp_git_repo, run_git):
        """Missing remotes are None."""
        repo = GitRepository(temp_git_repo)

        assert repo.get_remote_url() is None

        run_git(temp_git_repo, "remote", "add", "origin", "git@github.com:acme/mono.git")

        assert repo.get_remote_url("origin") == "git@github.com:acme/mono.git"

    def test_unknown_revision(self, temp_git_repo, commit_file):
        """Failing commands carry git's stderr."""
        commit_file(temp_git_repo, "a.txt", "a", "chore: init")
        repo = GitRepository(temp_git_repo)

        with pytest.raises(GitOperationError) as exc:
            repo.get_commits_since_tag("does-not-exist")

        assert exc.value.stderr

    def test_push_without_remote(self, temp_git_repo, commit_file):
        """Pushing to a missing remote fails."""
        commit_file(temp_git_repo, "a.txt", "a", "chore: init")

        with pytest.raises(GitOperationError):
            GitRepository(temp_git_repo).push("origin")
