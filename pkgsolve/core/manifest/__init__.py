"""清单模块

- tools_version.py: schema 版本与特性门控
- models.py: 不可变清单模型
- parser.py: 声明文本的词法/语法分析
- loader.py: 加载并求值为模型
- generator.py: 模型 -> 源文本
"""

from pkgsolve.core.manifest.generator import generate
from pkgsolve.core.manifest.loader import ManifestLoader
from pkgsolve.core.manifest.models import Manifest
from pkgsolve.core.manifest.tools_version import CURRENT, ToolsVersion

__all__ = [
    "CURRENT",
    "Manifest",
    "ManifestLoader",
    "ToolsVersion",
    "generate",
]
