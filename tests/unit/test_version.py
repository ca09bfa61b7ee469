"""Tests for semantic version handling."""

from __future__ import annotations

import pytest

from monorelease.core.version import (
    BumpType,
    Version,
    is_valid_version,
    max_version,
    parse_version,
    strip_tag_prefix,
)
from monorelease.exceptions import ConfigurationError, InvalidVersionError


class TestParseVersion:
    """Tests for Version.parse()."""

    def test_parse_release(self):
        """Parse a plain release version."""
        v = parse_version("1.2.3")

        assert (v.major, v.minor, v.patch) == (1, 2, 3)
        assert not v.is_prerelease
        assert str(v) == "1.2.3"

    def test_parse_prerelease_and_build(self):
        """Pre-release identifiers and build metadata are kept."""
        v = parse_version("2.0.0-beta.1+sha.5114f85")

        assert v.prerelease == ("beta", "1")
        assert v.build == "sha.5114f85"
        assert str(v) == "2.0.0-beta.1+sha.5114f85"

    @pytest.mark.parametrize("value", ["1.2", "v1.2.3", "01.2.3", "1.2.3-", "", "latest"])
    def test_invalid_versions(self, value):
        """Malformed versions raise InvalidVersionError."""
        with pytest.raises(InvalidVersionError):
            parse_version(value)

    def test_is_valid_version(self):
        """is_valid_version() never raises."""
        assert is_valid_version("0.0.1")
        assert not is_valid_version("1.0")
        assert not is_valid_version(None)


class TestVersionOrdering:
    """Tests for semver precedence."""

    def test_prerelease_below_release(self):
        """A pre-release sorts below its release."""
        assert parse_version("1.0.0-alpha") < parse_version("1.0.0")

    def test_numeric_identifiers_compare_numerically(self):
        """beta.2 < beta.10."""
        assert parse_version("1.0.0-beta.2") < parse_version("1.0.0-beta.10")

    def test_build_metadata_ignored(self):
        """Build metadata does not affect equality."""
        assert parse_version("1.0.0+a") == parse_version("1.0.0+b")

    def test_max_version(self):
        """max_version() picks the highest version."""
        versions = [parse_version(v) for v in ("1.0.0", "1.2.0", "1.1.0")]

        assert str(max_version(versions)) == "1.2.0"

    def test_max_version_empty(self):
        """max_version() of nothing is an error."""
        with pytest.raises(ValueError):
            max_version([])


class TestVersionBump:
    """Tests for Version.bump()."""

    @pytest.mark.parametrize(
        ("current", "bump", "expected"),
        [
            ("1.2.3", BumpType.MAJOR, "2.0.0"),
            ("1.2.3", BumpType.MINOR, "1.3.0"),
            ("1.2.3", BumpType.PATCH, "1.2.4"),
            ("1.1.0-beta.2", BumpType.MINOR, "1.1.0"),
            ("2.0.0-rc.1", BumpType.MAJOR, "2.0.0"),
            ("1.2.4-0", BumpType.PATCH, "1.2.4"),
        ],
    )
    def test_bump(self, current, bump, expected):
        """Bumps follow npm semantics."""
        assert str(parse_version(current).bump(bump)) == expected

    def test_prerelease_from_release(self):
        """prerelease on a release starts a new series on the next patch."""
        assert str(parse_version("1.2.3").bump(BumpType.PRERELEASE, "beta")) == "1.2.4-beta.0"
        assert str(parse_version("1.2.3").bump(BumpType.PRERELEASE)) == "1.2.4-0"

    def test_prerelease_increments(self):
        """prerelease increments the numeric identifier."""
        assert str(parse_version("1.2.4-beta.0").bump(BumpType.PRERELEASE, "beta")) == "1.2.4-beta.1"

    def test_prerelease_switches_series(self):
        """A different preid restarts the series."""
        assert str(parse_version("1.2.4-alpha.3").bump(BumpType.PRERELEASE, "beta")) == "1.2.4-beta.0"

    def test_unknown_bump_type(self):
        """Unknown bump names are configuration errors."""
        with pytest.raises(ConfigurationError, match="Invalid bump type 'premajor'"):
            parse_version("1.0.0").bump("premajor")

    def test_parse_bump_type(self):
        assert BumpType.parse("minor") is BumpType.MINOR
        assert BumpType.parse(BumpType.PATCH) is BumpType.PATCH

    def test_bump_none_is_error(self):
        """BumpType.NONE cannot be applied."""
        with pytest.raises(ValueError):
            parse_version("1.0.0").bump(BumpType.NONE)

    def test_bump_is_monotonic(self):
        """Every bump yields a strictly greater version."""
        current = parse_version("1.2.3-rc.1")
        for bump in (BumpType.MAJOR, BumpType.MINOR, BumpType.PATCH, BumpType.PRERELEASE):
            assert current.bump(bump) > current

    def test_is_initial(self):
        """0.0.0 is the never-released placeholder."""
        assert Version(0, 0, 0).is_initial
        assert not parse_version("0.0.1").is_initial


class TestStripTagPrefix:
    """Tests for strip_tag_prefix()."""

    @pytest.mark.parametrize(
        ("tag", "expected"),
        [
            ("v1.2.0", "1.2.0"),
            ("api@1.2.0", "1.2.0"),
            ("backend-v2.0.0-beta.1", "2.0.0-beta.1"),
            ("s3uploader@0.4.1", "0.4.1"),
        ],
    )
    def test_strip(self, tag, expected):
        """Non-numeric prefixes are removed."""
        assert strip_tag_prefix(tag) == expected
