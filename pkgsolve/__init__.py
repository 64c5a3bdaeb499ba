"""pkgsolve - 依赖解析与工作空间管理"""

__version__ = "0.3.0"
