"""Pins 文件（Package.resolved）

格式（JSON，版本 1）::

    {
      "object": {
        "pins": [
          {
            "package": "Foo",
            "repositoryURL": "https://example.com/foo.git",
            "state": {"branch": null, "revision": "<40 位 hash>", "version": "1.2.0"}
          }
        ]
      },
      "version": 1
    }

- repositoryURL 始终记录原始（未经镜像）位置
- pins 按标识排序，缩进 2 空格，以换行结尾；同一解析结果重写时字节一致
- 读取时按 resolve_identity(位置) 映射到图节点
- 写入走 atomic_write，失败不破坏旧文件
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pkgsolve.core.exceptions import PinsFileError
from pkgsolve.core.identity import IdentityResolver, PackageIdentity
from pkgsolve.core.resolver.constraints import BRANCH, REVISION, VERSION, BoundVersion
from pkgsolve.core.versions import Requirement, Version, parse_version
from pkgsolve.utils.yaml_io import atomic_write

logger = logging.getLogger(__name__)

PINS_FORMAT_VERSION = 1


@dataclass(frozen=True)
class ResolvedPin:
    """一个包在最终解析中的确切状态"""

    identity: PackageIdentity
    package: str
    location: str
    revision: str
    version: Version | None = None
    branch: str | None = None

    @property
    def kind(self) -> str:
        if self.version is not None:
            return VERSION
        if self.branch is not None:
            return BRANCH
        return REVISION

    @property
    def bound(self) -> BoundVersion:
        """作为解析偏好时的绑定"""
        if self.version is not None:
            return BoundVersion.of_version(self.version)
        if self.branch is not None:
            return BoundVersion.of_branch(self.branch, self.revision)
        return BoundVersion.of_revision(self.revision)

    def satisfies(self, requirement: Requirement) -> bool:
        if self.version is not None:
            return requirement.allows(self.version)
        if self.branch is not None:
            return requirement.kind == BRANCH and requirement.ref == self.branch
        return requirement.kind == REVISION and self.revision.startswith(requirement.ref)

    def describe(self) -> str:
        if self.version is not None:
            return str(self.version)
        if self.branch is not None:
            return f"{self.branch}@{self.revision[:12]}"
        return self.revision[:12]

    def to_dict(self) -> dict[str, Any]:
        return {
            "package": self.package,
            "repositoryURL": self.location,
            "state": {
                "branch": self.branch,
                "revision": self.revision,
                "version": str(self.version) if self.version is not None else None,
            },
        }


class PinsStore:
    """pins 文件读写"""

    def __init__(self, path: Path, identity_resolver: IdentityResolver | None = None) -> None:
        self.path = Path(path)
        self.identity_resolver = identity_resolver or IdentityResolver()

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> dict[PackageIdentity, ResolvedPin]:
        """读取 pins，文件不存在返回空"""
        if not self.path.is_file():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise PinsFileError(f"无法读取 pins 文件 {self.path}: {e}") from e
        if not isinstance(data, dict) or data.get("version") != PINS_FORMAT_VERSION:
            raise PinsFileError(f"不支持的 pins 文件格式: {self.path}")

        pins: dict[PackageIdentity, ResolvedPin] = {}
        for raw in (data.get("object") or {}).get("pins") or []:
            pin = self._parse_pin(raw)
            pins[pin.identity] = pin
        return pins

    def _parse_pin(self, raw: Any) -> ResolvedPin:
        try:
            location = raw["repositoryURL"]
            state = raw["state"]
            revision = state["revision"]
            version_text = state.get("version")
            version = parse_version(version_text) if version_text else None
        except (KeyError, TypeError, ValueError) as e:
            raise PinsFileError(f"pins 文件条目无效: {raw!r} ({e})") from e
        return ResolvedPin(
            identity=self.identity_resolver.resolve_identity(location),
            package=raw.get("package") or "",
            location=location,
            revision=revision,
            version=version,
            branch=state.get("branch"),
        )

    @staticmethod
    def render(pins: Iterable[ResolvedPin]) -> str:
        ordered = sorted(pins, key=lambda p: p.identity)
        data = {
            "object": {"pins": [p.to_dict() for p in ordered]},
            "version": PINS_FORMAT_VERSION,
        }
        return json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    def save(self, pins: Iterable[ResolvedPin]) -> None:
        content = self.render(pins)
        try:
            atomic_write(self.path, content)
        except OSError as e:
            raise PinsFileError(f"写入 pins 文件失败 {self.path}: {e}") from e
        logger.info("pins 已写入: %s", self.path)
