"""版本与版本需求

Version 直接使用 semantic_version.Version；本模块补充:
  - tag 名到版本的宽松解析（v 前缀、省略 minor/patch）
  - Requirement: 依赖边上的单一需求（exact / range / revision / branch / unversioned）
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from semantic_version import Version

__all__ = [
    "Version",
    "Requirement",
    "parse_version",
    "version_from_tag",
    "next_major",
    "next_minor",
    "next_patch",
]

_TAG_RE = re.compile(
    r"^v?(?P<major>\d+)(?:\.(?P<minor>\d+))?(?:\.(?P<patch>\d+))?"
    r"(?:-(?P<pre>[0-9A-Za-z.-]+))?(?:\+(?P<build>[0-9A-Za-z.-]+))?$"
)


def parse_version(text: str) -> Version:
    """严格解析语义化版本，失败抛 ValueError"""
    return Version(text.strip())


def version_from_tag(tag: str) -> Version | None:
    """把 tag 名解析为版本，非版本 tag 返回 None

    接受 "1.2.3" / "v1.2.3" / "1.2" / "1.2.3-beta.1+exp"。
    """
    m = _TAG_RE.match(tag.strip())
    if m is None:
        return None
    text = f"{m['major']}.{m['minor'] or 0}.{m['patch'] or 0}"
    if m["pre"]:
        text += f"-{m['pre']}"
    if m["build"]:
        text += f"+{m['build']}"
    try:
        return Version(text)
    except ValueError:
        return None


def next_major(v: Version) -> Version:
    return Version(major=v.major + 1, minor=0, patch=0)


def next_minor(v: Version) -> Version:
    return Version(major=v.major, minor=v.minor + 1, patch=0)


def next_patch(v: Version) -> Version:
    return Version(major=v.major, minor=v.minor, patch=v.patch + 1)


def _release(v: Version) -> tuple[int, int, int]:
    return (v.major, v.minor, v.patch)


@dataclass(frozen=True)
class Requirement:
    """依赖边上的需求

    kind:
      - exact:       lower 为唯一允许的版本
      - range:       [lower, upper) 半开区间
      - revision:    ref 为不可变 commit id
      - branch:      ref 为可变分支名
      - unversioned: 本地路径依赖，无版本
    """

    kind: str
    lower: Version | None = None
    upper: Version | None = None
    ref: str = ""

    VERSION_KINDS = frozenset(("exact", "range"))

    @classmethod
    def exact(cls, version: Version) -> Requirement:
        return cls("exact", lower=version)

    @classmethod
    def range(cls, lower: Version, upper: Version) -> Requirement:
        if not lower < upper:
            raise ValueError(f"版本区间为空: {lower}..<{upper}")
        return cls("range", lower=lower, upper=upper)

    @classmethod
    def up_to_next_major(cls, version: Version) -> Requirement:
        return cls.range(version, next_major(version))

    @classmethod
    def up_to_next_minor(cls, version: Version) -> Requirement:
        return cls.range(version, next_minor(version))

    @classmethod
    def revision(cls, revision: str) -> Requirement:
        return cls("revision", ref=revision)

    @classmethod
    def branch(cls, branch: str) -> Requirement:
        return cls("branch", ref=branch)

    @classmethod
    def unversioned(cls) -> Requirement:
        return cls("unversioned")

    @property
    def is_version_based(self) -> bool:
        return self.kind in self.VERSION_KINDS

    def allows(self, version: Version) -> bool:
        """版本是否落在需求内

        预发布版本只有在区间某一端本身是同一发布号的预发布时才被接受。
        """
        if self.kind == "exact":
            return version == self.lower
        if self.kind != "range" or self.lower is None or self.upper is None:
            return False
        if not (self.lower <= version < self.upper):
            return False
        if version.prerelease:
            return any(
                bound.prerelease and _release(bound) == _release(version)
                for bound in (self.lower, self.upper)
            )
        return True

    def __str__(self) -> str:
        if self.kind == "exact":
            return f"{self.lower}"
        if self.kind == "range":
            return f"{self.lower}..<{self.upper}"
        if self.kind in ("revision", "branch"):
            return f"{self.kind} {self.ref}"
        return "unversioned"
