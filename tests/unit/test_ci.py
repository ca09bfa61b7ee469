"""Tests for CI detection."""

from __future__ import annotations

import pytest

from monorelease.vcs.ci import ci_platform, is_ci


class TestCiDetection:
    """Tests for ci_platform() and is_ci()."""

    @pytest.mark.parametrize(
        ("env", "platform"),
        [
            ({"GITHUB_ACTIONS": "true"}, "github-actions"),
            ({"GITLAB_CI": "true"}, "gitlab-ci"),
            ({"JENKINS_URL": "https://jenkins.example.com"}, "jenkins"),
            ({"CI": "1"}, "unknown"),
            ({"CI": "false"}, None),
            ({}, None),
        ],
    )
    def test_platform(self, env, platform):
        """Known variables name the platform."""
        assert ci_platform(env) == platform

    def test_first_match_wins(self):
        """Specific platforms take precedence over the generic CI flag."""
        assert ci_platform({"CI": "true", "CIRCLECI": "true"}) == "circleci"

    def test_is_ci(self):
        assert is_ci({"BUILDKITE": "true"})
        assert not is_ci({"GITHUB_ACTIONS": ""})
