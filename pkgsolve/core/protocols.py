"""领域协议定义

集中定义各层之间的接口契约（Protocol），
上层依赖抽象而非具体实现：解析器只认 PackageProvider，
工作空间只认 RepositoryManager，测试中注入内存实现即可。

使用 typing.Protocol 而非 ABC，使得现有类无需修改继承关系即可满足协议。
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from pkgsolve.core.identity import PackageReference
    from pkgsolve.core.manifest.models import Manifest
    from pkgsolve.core.resolver.constraints import BoundVersion
    from pkgsolve.core.versions import Version


# =========================================================================
# 解析数据源协议
# =========================================================================

class PackageProvider(Protocol):
    """解析器的数据源

    每次调用都可能触发网络拉取；不同标识的调用可以并发，
    超时与重试由实现负责，失败以异常形式交给解析器。
    """

    def available_versions(self, ref: PackageReference) -> list[Version]:
        """列出包的全部可用版本（来自 tag）"""
        ...

    def manifest(self, ref: PackageReference, bound: BoundVersion) -> Manifest:
        """加载包在指定版本 / 分支 / revision 上的清单"""
        ...

    def resolve_revision(self, ref: PackageReference, bound: BoundVersion) -> str:
        """把版本 / 分支 / revision 解析为确切的 commit hash"""
        ...


# =========================================================================
# 版本控制能力协议
# =========================================================================

class RepositoryManager(Protocol):
    """版本控制能力（clone / fetch / tags / checkout / set_remote）

    handle 为实现自定义的仓库句柄，调用方只透传不解读。
    """

    def clone(self, location: str, dest: Path) -> Any:
        """克隆仓库到 dest，返回句柄"""
        ...

    def open(self, dest: Path) -> Any:
        """打开已存在的本地仓库，返回句柄"""
        ...

    def set_remote(self, handle: Any, location: str) -> Any:
        """把已有仓库的远端指向 location（如镜像变更后），返回新句柄"""
        ...

    def fetch(self, handle: Any) -> None:
        """从远端拉取最新引用"""
        ...

    def tags(self, handle: Any) -> list[str]:
        """列出全部 tag 名"""
        ...

    def checkout(self, handle: Any, revision: str) -> None:
        """把工作区切换到指定 revision"""
        ...

    def resolve_revision(self, handle: Any, ref: str) -> str:
        """把 tag / 分支 / 短 hash 解析为完整 commit hash"""
        ...
