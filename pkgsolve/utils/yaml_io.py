"""状态文件读写工具

工作空间里的持久化文件（配置、镜像表、pins 文件、checkout 状态）统一走这里：
  - YAML: 配置 / 镜像表
  - 原子写入: 所有会被并发读或中途被打断的文件（pins、checkout 状态）
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

# 配置类文件不会很大，超过此限制视为异常输入
MAX_YAML_SIZE = 4 * 1024 * 1024


def atomic_write(path: Path, content: str) -> None:
    """先写同目录临时文件再 os.replace，失败时原文件保持不变

    异常:
        OSError: 写入或替换失败（临时文件会被清理）
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, str(path))
    except BaseException:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


def load_yaml(path: str | Path) -> dict[str, Any]:
    """读取 YAML 字典；文件不存在或为空时返回 {}

    异常:
        yaml.YAMLError: 格式错误
        ValueError: 文件过大或顶层不是字典
    """
    p = Path(path)
    if not p.exists():
        return {}

    size = p.stat().st_size
    if size > MAX_YAML_SIZE:
        raise ValueError(f"YAML 文件过大: {p} ({size} 字节)")

    with open(p, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError:
            logger.error("YAML 解析失败: %s", p)
            raise

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{p} 顶层必须是字典，实际为 {type(data).__name__}")
    return data


def save_yaml(path: str | Path, data: Any) -> None:
    """原子写入 YAML（保持键顺序）"""
    content = yaml.safe_dump(
        data, default_flow_style=False,
        allow_unicode=True, sort_keys=False,
    )
    atomic_write(Path(path), content)
