"""包标识与位置解析

职责:
- 声明位置（URL / 路径）归一化
- 镜像表改写（仅按原始位置精确匹配）
- 从位置派生大小写不敏感的包标识

全部为纯函数，只读镜像表，无副作用。
"""

from __future__ import annotations

import os
import posixpath
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import unquote, urlparse

FILE_SYSTEM = "fileSystem"
SOURCE_CONTROL = "sourceControl"


@dataclass(frozen=True, order=True)
class PackageIdentity:
    """包的规范标识（小写）"""

    value: str

    @classmethod
    def plain(cls, name: str) -> PackageIdentity:
        return cls(name.lower())

    def __str__(self) -> str:
        return self.value


def identity_for_location(location: str) -> PackageIdentity:
    """取位置的最后一段路径，去掉 .git 后缀并转小写

        https://github.com/Org/Foo.git -> foo
        /path/to/Bar/                  -> bar
    """
    text = location.strip()
    if "://" in text:
        parsed = urlparse(text)
        text = parsed.path or parsed.netloc
    elif ":" in text and not text.startswith("/") and "@" in text.split(":", 1)[0]:
        # scp 风格: git@host:org/repo.git
        text = text.split(":", 1)[1]
    text = text.rstrip("/")
    last = text.rsplit("/", 1)[-1]
    if last.lower().endswith(".git"):
        last = last[:-4]
    return PackageIdentity.plain(last or location.strip())


def is_path_like(location: str) -> bool:
    """位置是否指向本地文件系统"""
    return location.startswith(("/", ".", "~", "file://")) or os.path.isabs(location)


def normalize_path(path: str, package_root: Path | str) -> str:
    """把清单中的路径归一化为绝对路径

    - file:///a/b   -> /a/b
    - ~ 与 ~/x      -> 用户主目录展开
    - ~foo          -> 普通相对路径（不是其他用户的主目录）
    - 相对路径      -> 相对 package_root
    """
    text = path.strip()
    if text.startswith("file://"):
        text = unquote(urlparse(text).path) or "/"
    if text == "~" or text.startswith("~/"):
        text = str(Path.home()) + text[1:]
    if not posixpath.isabs(text):
        text = posixpath.join(str(package_root), text)
    normalized = posixpath.normpath(text)
    # posix 规范允许路径以 // 开头，统一为单个 /
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return normalized


def normalize_url(url: str, package_root: Path | str) -> str:
    """远程 URL 原样保留（去掉末尾 /），本地仓库路径按路径规则归一化"""
    text = url.strip()
    if is_path_like(text):
        return normalize_path(text, package_root)
    return text.rstrip("/")


class MirrorMap:
    """有序的 原始位置 -> 镜像位置 表"""

    def __init__(self, entries: Iterable[tuple[str, str]] = ()) -> None:
        self._mirrors: dict[str, str] = {}
        for original, mirror in entries:
            self.set(original, mirror)

    def set(self, original: str, mirror: str) -> None:
        self._mirrors[original] = mirror

    def unset(self, location: str) -> bool:
        """按原始位置或镜像位置移除，返回是否移除了条目"""
        if location in self._mirrors:
            del self._mirrors[location]
            return True
        for original, mirror in self._mirrors.items():
            if mirror == location:
                del self._mirrors[original]
                return True
        return False

    def effective(self, location: str) -> str:
        return self._mirrors.get(location, location)

    def mirror_for(self, original: str) -> str | None:
        return self._mirrors.get(original)

    def original_for(self, mirror: str) -> str | None:
        for original, m in self._mirrors.items():
            if m == mirror:
                return original
        return None

    def entries(self) -> list[tuple[str, str]]:
        return list(self._mirrors.items())

    def __len__(self) -> int:
        return len(self._mirrors)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self._mirrors.items())

    def __contains__(self, original: object) -> bool:
        return original in self._mirrors


@dataclass(frozen=True)
class PackageReference:
    """图中的一个包：标识 + 来源种类 + 声明位置 + 生效位置（镜像后）

    相等性只看 identity，同一标识的不同拼写在图中是同一节点。
    """

    identity: PackageIdentity
    kind: str = field(compare=False)
    location: str = field(compare=False)
    effective_location: str = field(compare=False, default="")

    def __post_init__(self) -> None:
        if not self.effective_location:
            object.__setattr__(self, "effective_location", self.location)

    @property
    def is_local(self) -> bool:
        return self.kind == FILE_SYSTEM

    def __str__(self) -> str:
        return f"{self.identity}<{self.effective_location}>"


class IdentityResolver:
    """把声明位置映射为包标识（先应用镜像）"""

    def __init__(self, mirrors: MirrorMap | None = None) -> None:
        self.mirrors = mirrors if mirrors is not None else MirrorMap()

    def apply_mirrors(self, location: str) -> str:
        return self.mirrors.effective(location)

    def resolve_identity(self, location: str) -> PackageIdentity:
        return identity_for_location(self.apply_mirrors(location))

    def reference(self, location: str, kind: str) -> PackageReference:
        effective = self.apply_mirrors(location)
        return PackageReference(
            identity=identity_for_location(effective),
            kind=kind,
            location=location,
            effective_location=effective,
        )
