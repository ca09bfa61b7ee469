"""Semantic version parsing, ordering and bumping.

Versions follow Semantic Versioning 2.0.0. Bump semantics mirror npm's
``semver.inc`` so that versions produced here agree with the package
managers that consume them:

- bumping a pre-release to the release it precedes drops the suffix
  (``1.1.0-beta.2`` + minor -> ``1.1.0``)
- ``prerelease`` increments the last numeric identifier, or starts a new
  ``<preid>.0`` series
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from functools import total_ordering

from monorelease.exceptions import ConfigurationError, InvalidVersionError

_SEMVER_RE = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)

_EMBEDDED_SEMVER_RE = re.compile(r"(\d+\.\d+\.\d+(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?)$")


class BumpType(str, Enum):
    """Which version component to increment."""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    PRERELEASE = "prerelease"
    NONE = "none"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: BumpType | str) -> BumpType:
        """Bump type named by ``value``.

        Raises:
            ConfigurationError: If ``value`` is not a known bump type
        """
        try:
            return cls(value)
        except ValueError:
            choices = ", ".join(member.value for member in cls)
            raise ConfigurationError(f"Invalid bump type '{value}'. Expected one of: {choices}") from None


# Initial versions used when a project has never been released.
FIRST_RELEASE_VERSIONS: dict[BumpType, str] = {
    BumpType.MAJOR: "1.0.0",
    BumpType.MINOR: "0.1.0",
    BumpType.PATCH: "0.0.1",
}


def _identifier_key(identifier: str) -> tuple[int, int, str]:
    # Numeric identifiers sort before alphanumeric ones.
    if identifier.isdigit():
        return (0, int(identifier), "")
    return (1, 0, identifier)


@total_ordering
@dataclass(frozen=True, eq=False)
class Version:
    """A semantic version.

    Ordering follows semver precedence; build metadata is ignored for
    both ordering and equality.
    """

    major: int
    minor: int
    patch: int
    prerelease: tuple[str, ...] = field(default=())
    build: str | None = None

    @classmethod
    def parse(cls, value: str) -> Version:
        """Parse a version string.

        Raises:
            InvalidVersionError: If ``value`` is not valid semver
        """
        match = _SEMVER_RE.match(value.strip()) if value else None
        if match is None:
            raise InvalidVersionError(f"Invalid semver version: {value!r}")

        major, minor, patch, pre, build = match.groups()
        return cls(
            major=int(major),
            minor=int(minor),
            patch=int(patch),
            prerelease=tuple(pre.split(".")) if pre else (),
            build=build,
        )

    @property
    def is_prerelease(self) -> bool:
        return bool(self.prerelease)

    @property
    def is_initial(self) -> bool:
        """True for ``0.0.0``, the placeholder of a never-released project."""
        return (self.major, self.minor, self.patch) == (0, 0, 0) and not self.prerelease

    def _key(self) -> tuple:
        pre_key: tuple = tuple(_identifier_key(p) for p in self.prerelease)
        # A release sorts above all of its pre-releases.
        return (self.major, self.minor, self.patch, 0 if self.prerelease else 1, pre_key)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: Version) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += "-" + ".".join(self.prerelease)
        if self.build:
            text += "+" + self.build
        return text

    def bump(self, bump_type: BumpType | str, preid: str | None = None) -> Version:
        """Return the next version for ``bump_type``.

        Args:
            bump_type: Component to increment
            preid: Pre-release identifier (e.g. "beta") for prerelease bumps

        Returns:
            A new Version strictly greater than this one
        """
        kind = BumpType.parse(bump_type)

        if kind == BumpType.MAJOR:
            if self.prerelease and self.minor == 0 and self.patch == 0:
                return Version(self.major, 0, 0)
            return Version(self.major + 1, 0, 0)

        if kind == BumpType.MINOR:
            if self.prerelease and self.patch == 0:
                return Version(self.major, self.minor, 0)
            return Version(self.major, self.minor + 1, 0)

        if kind == BumpType.PATCH:
            if self.prerelease:
                return Version(self.major, self.minor, self.patch)
            return Version(self.major, self.minor, self.patch + 1)

        if kind == BumpType.PRERELEASE:
            return self._bump_prerelease(preid)

        raise ValueError(f"Cannot bump version with {kind!r}")

    def _bump_prerelease(self, preid: str | None) -> Version:
        if not self.prerelease:
            base = Version(self.major, self.minor, self.patch + 1)
            return base.with_prerelease(preid)

        identifiers = list(self.prerelease)
        for index in range(len(identifiers) - 1, -1, -1):
            if identifiers[index].isdigit():
                identifiers[index] = str(int(identifiers[index]) + 1)
                break
        else:
            identifiers.append("0")

        if preid:
            same_series = identifiers[0] == preid and len(identifiers) > 1 and identifiers[1].isdigit()
            if not same_series:
                identifiers = [preid, "0"]

        return Version(self.major, self.minor, self.patch, tuple(identifiers))

    def with_prerelease(self, preid: str | None) -> Version:
        """Start a fresh ``<preid>.0`` (or ``0``) pre-release of this version."""
        identifiers = (preid, "0") if preid else ("0",)
        return Version(self.major, self.minor, self.patch, identifiers)


def parse_version(value: str) -> Version:
    """Parse a version string, raising InvalidVersionError if malformed."""
    return Version.parse(value)


def is_valid_version(value: str | None) -> bool:
    """Return True if ``value`` is a well-formed semantic version."""
    if not value:
        return False
    return _SEMVER_RE.match(value.strip()) is not None


def strip_tag_prefix(tag: str) -> str:
    """Strip any non-numeric prefix from a tag (``api-v1.2.0`` -> ``1.2.0``).

    Project names containing digits would leave junk in front of the
    version, so fall back to the trailing semver-looking part of the tag.
    """
    stripped = re.sub(r"^[^0-9]*", "", tag)
    if is_valid_version(stripped):
        return stripped
    match = _EMBEDDED_SEMVER_RE.search(tag)
    return match.group(1) if match else stripped


def max_version(versions: list[Version]) -> Version:
    """Return the highest version under semver ordering."""
    if not versions:
        raise ValueError("max_version() requires at least one version")
    return max(versions)
