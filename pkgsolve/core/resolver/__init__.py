"""依赖解析

- constraints.py: 约束与绑定
- graph.py: 依赖图
- solver.py: 冲突驱动回跳解析器
"""

from pkgsolve.core.resolver.constraints import BoundVersion, Constraint
from pkgsolve.core.resolver.graph import DependencyGraph
from pkgsolve.core.resolver.solver import DecisionFrame, DependencyResolver, Resolution, ResolvedBinding

__all__ = [
    "BoundVersion",
    "Constraint",
    "DecisionFrame",
    "DependencyGraph",
    "DependencyResolver",
    "Resolution",
    "ResolvedBinding",
]
