"""versions.py 单元测试"""

from __future__ import annotations

import pytest

from pkgsolve.core.versions import (
    Requirement,
    Version,
    next_major,
    next_minor,
    next_patch,
    parse_version,
    version_from_tag,
)


class TestTags:
    @pytest.mark.parametrize("tag, expected", [
        ("1.2.3", "1.2.3"),
        ("v1.2.3", "1.2.3"),
        ("1.2", "1.2.0"),
        ("v2", "2.0.0"),
        ("1.0.0-beta.1", "1.0.0-beta.1"),
    ])
    def test_version_tags(self, tag, expected):
        assert version_from_tag(tag) == Version(expected)

    @pytest.mark.parametrize("tag", ["release-1", "latest", "1.2.3.4", ""])
    def test_non_version_tags(self, tag):
        assert version_from_tag(tag) is None

    def test_parse_version_strict(self):
        with pytest.raises(ValueError):
            parse_version("1.2")


class TestBumps:
    def test_next(self):
        v = Version("1.2.3")
        assert next_major(v) == Version("2.0.0")
        assert next_minor(v) == Version("1.3.0")
        assert next_patch(v) == Version("1.2.4")


class TestRequirement:
    def test_up_to_next_major(self):
        r = Requirement.up_to_next_major(Version("1.0.0"))
        assert r.allows(Version("1.9.9"))
        assert not r.allows(Version("2.0.0"))
        assert not r.allows(Version("0.9.0"))
        assert str(r) == "1.0.0..<2.0.0"

    def test_up_to_next_minor(self):
        r = Requirement.up_to_next_minor(Version("1.2.0"))
        assert r.allows(Version("1.2.5"))
        assert not r.allows(Version("1.3.0"))

    def test_exact(self):
        r = Requirement.exact(Version("1.2.3"))
        assert r.allows(Version("1.2.3"))
        assert not r.allows(Version("1.2.4"))
        assert str(r) == "1.2.3"

    def test_prerelease_excluded_by_default(self):
        r = Requirement.up_to_next_major(Version("1.0.0"))
        assert not r.allows(Version("1.5.0-beta.1"))

    def test_prerelease_allowed_when_bound_is_prerelease(self):
        r = Requirement.range(Version("2.0.0-alpha"), Version("3.0.0"))
        assert r.allows(Version("2.0.0-beta"))
        assert not r.allows(Version("2.1.0-beta"))

    def test_empty_range_rejected(self):
        with pytest.raises(ValueError, match="区间为空"):
            Requirement.range(Version("2.0.0"), Version("1.0.0"))

    def test_range_without_bounds_allows_nothing(self):
        assert not Requirement("range", lower=Version("1.0.0")).allows(Version("1.0.0"))

    def test_ref_kinds(self):
        assert not Requirement.branch("main").is_version_based
        assert not Requirement.branch("main").allows(Version("1.0.0"))
        assert str(Requirement.branch("main")) == "branch main"
        assert str(Requirement.revision("abc")) == "revision abc"
        assert str(Requirement.unversioned()) == "unversioned"
