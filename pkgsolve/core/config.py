"""集中配置管理

工作空间内各目录/文件名、并发度、当前 tools version 的统一入口。
支持从 YAML 文件加载 + 编程式覆盖。
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from pkgsolve.core.exceptions import ConfigError
from pkgsolve.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """全局配置"""

    # 文件名
    manifest_file: str = "Package.swift"
    pins_file: str = "Package.resolved"
    mirrors_file: str = ".pkgsolve/mirrors.yml"

    # 目录（相对工作空间根目录）
    build_dir: str = ".build"
    checkouts_dir: str = "checkouts"
    repositories_dir: str = "repositories"
    state_file: str = "workspace-state.json"

    # 解析
    tools_version: str = "5.6"
    max_workers: int = 4
    git_timeout: int = 600

    # 放不到字段里的配置项
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str | Path) -> Config:
        """从 YAML 加载配置，文件不存在时返回默认值"""
        try:
            data = load_yaml(path)
        except (ValueError, yaml.YAMLError) as e:
            raise ConfigError(f"配置文件无效: {path} - {e}") from e
        if not data:
            return cls()
        known = {f.name for f in fields(cls)} - {"extra"}
        cfg = cls(**{k: v for k, v in data.items() if k in known})
        cfg.extra = {k: v for k, v in data.items() if k not in known}
        if cfg.max_workers < 1:
            raise ConfigError(f"max_workers 必须 >= 1: {cfg.max_workers}")
        return cfg

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def build_path(self, root: Path) -> Path:
        return root / self.build_dir

    def checkouts_path(self, root: Path) -> Path:
        return self.build_path(root) / self.checkouts_dir

    def repositories_path(self, root: Path) -> Path:
        return self.build_path(root) / self.repositories_dir


# 全局单例，由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str | Path) -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s", path)
    return _current
