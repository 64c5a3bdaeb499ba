"""清单数据模型

一个包在某个版本上的声明，加载后不可变（frozen dataclass + tuple）。
重新生成源文本得到的是新文本，而不是修改模型。

相等性覆盖全部声明字段；加载上下文（标识、位置、版本、文件路径）不参与比较。
"""

from __future__ import annotations

from dataclasses import dataclass, field

from pkgsolve.core.identity import FILE_SYSTEM, PackageIdentity, PackageReference
from pkgsolve.core.manifest.tools_version import ToolsVersion
from pkgsolve.core.versions import Requirement, Version

# 目标类型
REGULAR = "regular"
EXECUTABLE = "executable"
TEST = "test"
SYSTEM = "system"
BINARY = "binary"
PLUGIN = "plugin"

TARGET_TYPES = (REGULAR, EXECUTABLE, TEST, SYSTEM, BINARY, PLUGIN)

# 设置所属工具
SETTING_TOOLS = ("c", "cxx", "swift", "linker")


@dataclass(frozen=True)
class PlatformDescription:
    """最低部署平台，name 为小写规范名（macos / ios / ...）"""

    name: str
    version: str


@dataclass(frozen=True)
class PackageCondition:
    """.when(platforms:, configuration:)"""

    platforms: tuple[str, ...] = ()
    configuration: str | None = None


@dataclass(frozen=True)
class SystemPackageProvider:
    """系统库安装来源：brew / apt / yum"""

    kind: str
    packages: tuple[str, ...]


@dataclass(frozen=True)
class PackageDependency:
    """包级依赖声明

    location 为归一化后的声明位置（未应用镜像）；identity 已应用镜像。
    """

    identity: PackageIdentity
    kind: str
    location: str
    requirement: Requirement
    name: str | None = None
    effective_location: str = field(default="", compare=False)

    @property
    def is_local(self) -> bool:
        return self.kind == FILE_SYSTEM

    @property
    def reference(self) -> PackageReference:
        return PackageReference(
            identity=self.identity,
            kind=self.kind,
            location=self.location,
            effective_location=self.effective_location or self.location,
        )


@dataclass(frozen=True)
class TargetDependency:
    """目标依赖；kind 为 target / product / byName"""

    kind: str
    name: str
    package: str | None = None
    condition: PackageCondition | None = None


@dataclass(frozen=True)
class Resource:
    """资源规则；rule 为 process / copy，localization 为 None / base / default"""

    rule: str
    path: str
    localization: str | None = None


@dataclass(frozen=True)
class BuildSetting:
    """单条构建设置

    tool:  c / cxx / swift / linker
    name:  headerSearchPath / define / linkedLibrary / linkedFramework / unsafeFlags
    value: define 的 "NAME=VALUE" 也存为单个字符串
    """

    tool: str
    name: str
    value: tuple[str, ...]
    condition: PackageCondition | None = None


@dataclass(frozen=True)
class PluginCapability:
    kind: str  # buildTool / command
    verb: str = ""
    description: str = ""


@dataclass(frozen=True)
class PluginUsage:
    name: str
    package: str | None = None


@dataclass(frozen=True)
class Target:
    name: str
    type: str = REGULAR
    dependencies: tuple[TargetDependency, ...] = ()
    path: str | None = None
    url: str | None = None
    exclude: tuple[str, ...] = ()
    sources: tuple[str, ...] | None = None
    resources: tuple[Resource, ...] = ()
    public_headers_path: str | None = None
    pkg_config: str | None = None
    providers: tuple[SystemPackageProvider, ...] = ()
    plugin_capability: PluginCapability | None = None
    settings: tuple[BuildSetting, ...] = ()
    checksum: str | None = None
    plugin_usages: tuple[PluginUsage, ...] = ()

    def settings_for(self, tool: str) -> tuple[BuildSetting, ...]:
        return tuple(s for s in self.settings if s.tool == tool)


@dataclass(frozen=True)
class Product:
    name: str
    type: str  # library / executable / plugin
    targets: tuple[str, ...] = ()
    library_type: str | None = None  # None 表示 automatic


@dataclass(frozen=True)
class Manifest:
    """一个包在一个版本上的完整声明"""

    name: str
    tools_version: ToolsVersion
    default_localization: str | None = None
    platforms: tuple[PlatformDescription, ...] = ()
    pkg_config: str | None = None
    providers: tuple[SystemPackageProvider, ...] = ()
    products: tuple[Product, ...] = ()
    dependencies: tuple[PackageDependency, ...] = ()
    targets: tuple[Target, ...] = ()
    swift_language_versions: tuple[str, ...] | None = None
    c_language_standard: str | None = None
    cxx_language_standard: str | None = None

    # 加载上下文，不参与比较
    identity: PackageIdentity | None = field(default=None, compare=False)
    package_kind: str = field(default="root", compare=False)
    location: str = field(default="", compare=False)
    path: str = field(default="", compare=False)
    version: Version | None = field(default=None, compare=False)
    revision: str | None = field(default=None, compare=False)

    def target(self, name: str) -> Target | None:
        for t in self.targets:
            if t.name == name:
                return t
        return None

    def dependency(self, identity: PackageIdentity) -> PackageDependency | None:
        for d in self.dependencies:
            if d.identity == identity:
                return d
        return None
