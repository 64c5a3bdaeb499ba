"""约束与绑定

- BoundVersion: 解析器为一个包做出的选择（版本 / 分支 / revision / 本地）
- Constraint:   某个依赖方对某个包施加的一条需求，记录来源与引入层级
"""

from __future__ import annotations

from dataclasses import dataclass

from pkgsolve.core.identity import PackageIdentity, PackageReference
from pkgsolve.core.versions import Requirement, Version

# 约束种类分组：同一包上出现不同分组即为不兼容
VERSION = "version"
BRANCH = "branch"
REVISION = "revision"
UNVERSIONED = "unversioned"

ROOT_LEVEL = -1


def requirement_group(requirement: Requirement) -> str:
    if requirement.is_version_based:
        return VERSION
    return requirement.kind


@dataclass(frozen=True)
class BoundVersion:
    """一个包被绑定到的具体状态

    分支绑定可带 revision：来自 pins 的偏好，表示沿用 pin 住的提交而不是分支最新提交。
    """

    kind: str
    version: Version | None = None
    ref: str = ""
    revision: str = ""

    @classmethod
    def of_version(cls, version: Version) -> BoundVersion:
        return cls(VERSION, version=version)

    @classmethod
    def of_branch(cls, branch: str, revision: str = "") -> BoundVersion:
        return cls(BRANCH, ref=branch, revision=revision)

    @classmethod
    def of_revision(cls, revision: str) -> BoundVersion:
        return cls(REVISION, ref=revision)

    @classmethod
    def unversioned(cls) -> BoundVersion:
        return cls(UNVERSIONED)

    def satisfies(self, requirement: Requirement) -> bool:
        if self.version is not None:
            return requirement.allows(self.version)
        if self.kind in (BRANCH, REVISION):
            return requirement.kind == self.kind and requirement.ref == self.ref
        return requirement.kind == UNVERSIONED

    def __str__(self) -> str:
        if self.kind == VERSION:
            return str(self.version)
        if self.kind in (BRANCH, REVISION):
            return f"{self.kind} {self.ref}"
        return "local"


@dataclass(frozen=True)
class Constraint:
    """依赖方 origin 对 ref 的一条需求

    origin_level 为引入该约束的决策层级，根清单为 ROOT_LEVEL。
    """

    ref: PackageReference
    requirement: Requirement
    origin: str
    origin_level: int = ROOT_LEVEL

    @property
    def identity(self) -> PackageIdentity:
        return self.ref.identity

    @property
    def group(self) -> str:
        return requirement_group(self.requirement)

    def describe(self) -> str:
        return f"{self.origin} 依赖 {self.ref.location} ({self.requirement})"
