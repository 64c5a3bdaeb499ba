"""清单 schema 版本（tools version）

职责:
- 解析 / 输出首行版本标记
- 特性引入版本表：每个受版本门控的构造只在这里登记一次，
  加载时统一校验，生成器不再做版本比较
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from pkgsolve.core.exceptions import UnsupportedFeatureError

MARKER_PREFIX = "// swift-tools-version:"

_MARKER_RE = re.compile(
    r"^//\s*swift-tools-version:\s*(?P<version>\d+(?:\.\d+){0,2})\s*(?:;.*)?$",
    re.IGNORECASE,
)
_VERSION_RE = re.compile(r"^(\d+)(?:\.(\d+))?(?:\.(\d+))?$")


@dataclass(frozen=True, order=True)
class ToolsVersion:
    major: int
    minor: int = 0
    patch: int = 0

    @classmethod
    def parse(cls, text: str) -> ToolsVersion:
        m = _VERSION_RE.match(text.strip())
        if m is None:
            raise ValueError(f"无效的 tools version: {text!r}")
        return cls(int(m.group(1)), int(m.group(2) or 0), int(m.group(3) or 0))

    @classmethod
    def from_marker(cls, line: str) -> ToolsVersion | None:
        """从首行标记解析，非标记行返回 None"""
        m = _MARKER_RE.match(line.strip())
        if m is None:
            return None
        return cls.parse(m.group("version"))

    @property
    def marker(self) -> str:
        """首行标记；5.4 起冒号后带一个空格"""
        spacing = " " if self >= V5_4 else ""
        return f"{MARKER_PREFIX}{spacing}{self}"

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}"
        if self.patch:
            text += f".{self.patch}"
        return text


V4 = ToolsVersion(4, 0)
V4_2 = ToolsVersion(4, 2)
V5 = ToolsVersion(5, 0)
V5_2 = ToolsVersion(5, 2)
V5_3 = ToolsVersion(5, 3)
V5_4 = ToolsVersion(5, 4)
V5_5 = ToolsVersion(5, 5)
V5_6 = ToolsVersion(5, 6)

MINIMUM_SUPPORTED = V4
CURRENT = V5_6


# 特性 -> 引入版本
FEATURES: dict[str, ToolsVersion] = {
    "package(path:)": V4_2,
    "systemLibrary": V4_2,
    "platforms": V5,
    "swiftLanguageVersions enum": V5,
    "build settings": V5,
    "package(name:)": V5_2,
    ".product(name:package:)": V5_2,
    "defaultLocalization": V5_3,
    "resources": V5_3,
    "binaryTarget": V5_3,
    "target dependency condition": V5_3,
    "executableTarget": V5_4,
    "plugin": V5_5,
    "plugin usages": V5_5,
    "package(url:branch:)": V5_5,
    "package(url:revision:)": V5_5,
    "command plugin": V5_6,
}


def require_feature(feature: str, declared: ToolsVersion) -> None:
    """声明版本低于特性引入版本时抛 UnsupportedFeatureError"""
    required = FEATURES[feature]
    if declared < required:
        raise UnsupportedFeatureError(feature, required, declared)
