"""CI environment detection."""

from __future__ import annotations

import os
from collections.abc import Mapping

# Checked in order; the first variable present names the platform.
_CI_PLATFORMS = (
    ("GITHUB_ACTIONS", "github-actions"),
    ("GITLAB_CI", "gitlab-ci"),
    ("CIRCLECI", "circleci"),
    ("TRAVIS", "travis"),
    ("JENKINS_URL", "jenkins"),
    ("BUILDKITE", "buildkite"),
    ("TF_BUILD", "azure-pipelines"),
    ("BITBUCKET_BUILD_NUMBER", "bitbucket-pipelines"),
    ("TEAMCITY_VERSION", "teamcity"),
    ("DRONE", "drone"),
)

_FALSY = {"", "0", "false", "no"}


def ci_platform(env: Mapping[str, str] | None = None) -> str | None:
    """Name of the CI platform we are running on, or None."""
    env = os.environ if env is None else env
    for variable, name in _CI_PLATFORMS:
        if env.get(variable, "").strip().lower() not in _FALSY:
            return name
    if env.get("CI", "").strip().lower() not in _FALSY:
        return "unknown"
    return None


def is_ci(env: Mapping[str, str] | None = None) -> bool:
    return ci_platform(env) is not None
