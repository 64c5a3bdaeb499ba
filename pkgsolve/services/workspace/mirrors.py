"""镜像配置（工作空间本地，不进入 pins）

文件格式（YAML）::

    mirrors:
      - original: https://github.com/org/foo.git
        mirror: https://mirror.example.com/foo.git
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from pkgsolve.core.exceptions import ConfigError
from pkgsolve.core.identity import MirrorMap
from pkgsolve.utils.yaml_io import load_yaml, save_yaml

logger = logging.getLogger(__name__)


class MirrorConfig:
    """镜像配置文件读写"""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> MirrorMap:
        try:
            data = load_yaml(self.path)
        except (ValueError, yaml.YAMLError) as e:
            raise ConfigError(f"镜像配置无效: {self.path} - {e}") from e
        entries = data.get("mirrors") or []
        if not isinstance(entries, list):
            raise ConfigError(f"镜像配置无效: {self.path} - mirrors 必须是列表")
        mirrors = MirrorMap()
        for entry in entries:
            if not isinstance(entry, dict) or not entry.get("original") or not entry.get("mirror"):
                raise ConfigError(f"镜像条目必须包含 original 与 mirror: {entry!r}")
            mirrors.set(str(entry["original"]), str(entry["mirror"]))
        return mirrors

    def save(self, mirrors: MirrorMap) -> None:
        save_yaml(self.path, {
            "mirrors": [{"original": o, "mirror": m} for o, m in mirrors.entries()],
        })

    def set_mirror(self, original: str, mirror: str) -> MirrorMap:
        mirrors = self.load()
        mirrors.set(original, mirror)
        self.save(mirrors)
        logger.info("镜像已设置: %s -> %s", original, mirror)
        return mirrors

    def unset_mirror(self, location: str) -> MirrorMap:
        """按原始位置或镜像位置移除"""
        mirrors = self.load()
        if not mirrors.unset(location):
            raise ConfigError(f"未找到镜像: {location}")
        self.save(mirrors)
        logger.info("镜像已移除: %s", location)
        return mirrors

    def get_mirror(self, original: str) -> str | None:
        return self.load().mirror_for(original)
