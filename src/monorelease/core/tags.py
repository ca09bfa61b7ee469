"""Release tag naming.

Tag templates use the placeholders ``{projectName}``, ``{version}``,
``{releaseGroupName}``, ``{prefix}`` and ``{suffix}``; substitution is
verbatim (no escaping).
"""

from __future__ import annotations

from typing import Literal

Relationship = Literal["independent", "fixed"]

INDEPENDENT_TAG_FORMAT = "{projectName}@{version}"
GROUP_TAG_FORMAT = "{releaseGroupName}-v{version}"
FIXED_TAG_FORMAT = "v{version}"


def default_tag_format(relationship: Relationship, release_group: str | None = None) -> str:
    """Default template for a versioning relationship."""
    if relationship == "independent":
        return INDEPENDENT_TAG_FORMAT
    if release_group:
        return GROUP_TAG_FORMAT
    return FIXED_TAG_FORMAT


def render_tag(
    template: str,
    *,
    project_name: str,
    version: str,
    release_group: str | None = None,
    prefix: str = "",
    suffix: str = "",
) -> str:
    values = {
        "{projectName}": project_name,
        "{version}": version,
        "{releaseGroupName}": release_group or "",
        "{prefix}": prefix,
        "{suffix}": suffix,
    }
    tag = template
    for placeholder, value in values.items():
        tag = tag.replace(placeholder, value)
    return tag


def generate_tag_name(
    project_name: str,
    version: str,
    *,
    relationship: Relationship = "fixed",
    release_group: str | None = None,
    tag_format: str | None = None,
    prefix: str = "",
    suffix: str = "",
) -> str:
    """Tag name for a release of ``project_name`` at ``version``.

    >>> generate_tag_name("api", "1.2.0", relationship="independent")
    'api@1.2.0'
    >>> generate_tag_name("api", "1.2.0", release_group="backend")
    'backend-v1.2.0'
    """
    template = tag_format or default_tag_format(relationship, release_group)
    return render_tag(
        template,
        project_name=project_name,
        version=version,
        release_group=release_group,
        prefix=prefix,
        suffix=suffix,
    )


def tag_match_pattern(
    project_name: str,
    *,
    relationship: Relationship = "fixed",
    release_group: str | None = None,
    tag_format: str | None = None,
    prefix: str = "",
    suffix: str = "",
) -> str:
    """Glob matching every tag this project's releases could have produced."""
    return generate_tag_name(
        project_name,
        "*",
        relationship=relationship,
        release_group=release_group,
        tag_format=tag_format,
        prefix=prefix,
        suffix=suffix,
    )
