"""统一异常体系

所有领域异常继承 PkgSolveError，CLI 层据 code 输出友好提示。

分层:
  - 清单加载: ManifestNotFoundError / ToolsVersionMismatchError /
    MalformedDeclarationError / UnsupportedFeatureError
  - 依赖解析: ResolutionError / IncompatibleRequirementsError
  - 工作空间: CheckoutFailedError (可重试) / IdentityCollisionError / PinsFileError
"""

from __future__ import annotations


class PkgSolveError(Exception):
    """基础异常"""

    code: str = "UNKNOWN"
    retriable: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(PkgSolveError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ValidationError(PkgSolveError):
    """输入数据校验失败"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


# =========================================================================
# 清单加载
# =========================================================================


class ManifestError(PkgSolveError):
    """清单加载异常基类"""

    code = "MANIFEST_ERROR"


class ManifestNotFoundError(ManifestError):
    """包根目录下没有清单文件"""

    code = "MANIFEST_NOT_FOUND"


class ToolsVersionMismatchError(ManifestError):
    """清单声明的 tools version 高于当前工具链或低于最低支持版本"""

    code = "TOOLS_VERSION_MISMATCH"


class MalformedDeclarationError(ManifestError):
    """清单文本无法求值为结构化模型"""

    code = "MALFORMED_DECLARATION"

    def __init__(self, message: str, *, path: str = "", line: int = 0, column: int = 0) -> None:
        location = ""
        if path:
            location = f"{path}:{line}:{column}: " if line else f"{path}: "
        elif line:
            location = f"{line}:{column}: "
        super().__init__(f"{location}{message}")
        self.diagnostic = message
        self.path = path
        self.line = line
        self.column = column


class UnsupportedFeatureError(ManifestError):
    """使用了高于声明 tools version 的特性"""

    code = "UNSUPPORTED_FEATURE"

    def __init__(self, feature: str, required: object, declared: object) -> None:
        super().__init__(
            f"'{feature}' 需要 tools version {required} 及以上，清单声明为 {declared}"
        )
        self.feature = feature
        self.required = required
        self.declared = declared


# =========================================================================
# 依赖解析
# =========================================================================


class ResolutionError(PkgSolveError):
    """依赖图无解

    conflicts 为互相不可同时满足的需求描述（最小冲突集）。
    """

    code = "RESOLUTION_FAILED"

    def __init__(self, message: str, conflicts: list[str] | None = None) -> None:
        self.conflicts = list(conflicts or [])
        if self.conflicts:
            message = message + "\n" + "\n".join(f"  - {c}" for c in self.conflicts)
        super().__init__(message)


class IncompatibleRequirementsError(ResolutionError):
    """同一包上出现不同种类的需求（版本 / 分支 / revision）"""

    code = "INCOMPATIBLE_REQUIREMENTS"


# =========================================================================
# 工作空间
# =========================================================================


class CheckoutFailedError(PkgSolveError):
    """clone / fetch / checkout 失败，调用方可重试"""

    code = "CHECKOUT_FAILED"
    retriable = True

    def __init__(self, message: str, identity: str = "") -> None:
        super().__init__(message)
        self.identity = identity


class IdentityCollisionError(PkgSolveError):
    """两个不同声明归一到同一标识但来源种类不一致，不可重试"""

    code = "IDENTITY_COLLISION"


class PinsFileError(PkgSolveError):
    """pins 文件读写失败"""

    code = "PINS_FILE_ERROR"
