"""工作空间服务

- workspace.py: 状态机（解析 -> pins -> checkout）
- provider.py: 解析器数据源（缓存 clone + 清单缓存）
- checkout.py: checkout 物化与状态日志
- sources.py: git 适配器
- pins.py: pins 文件
- mirrors.py: 镜像配置
"""

from pkgsolve.services.workspace.pins import PinsStore, ResolvedPin
from pkgsolve.services.workspace.workspace import Workspace, WorkspaceState

__all__ = ["PinsStore", "ResolvedPin", "Workspace", "WorkspaceState"]
