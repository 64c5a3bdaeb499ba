"""清单加载器

流程:
  1. 在包根目录定位清单文件（支持 Package@swift-X.Y.swift 版本专用清单）
  2. 读取首行 tools version 标记并与当前 tools version 比较
  3. 解析声明文本，按声明的 tools version 求值为结构化模型
  4. 依赖位置全部经 IdentityResolver 归一化并派生标识

除读取文件外无副作用，可并发调用。
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Callable

from pkgsolve.core.exceptions import (
    MalformedDeclarationError,
    ManifestNotFoundError,
    ToolsVersionMismatchError,
)
from pkgsolve.core.identity import (
    FILE_SYSTEM,
    SOURCE_CONTROL,
    IdentityResolver,
    PackageIdentity,
    normalize_path,
    normalize_url,
)
from pkgsolve.core.manifest import parser as ast
from pkgsolve.core.manifest.models import (
    BINARY,
    EXECUTABLE,
    PLUGIN,
    REGULAR,
    SYSTEM,
    TEST,
    BuildSetting,
    Manifest,
    PackageCondition,
    PackageDependency,
    PlatformDescription,
    PluginCapability,
    PluginUsage,
    Product,
    Resource,
    SystemPackageProvider,
    Target,
    TargetDependency,
)
from pkgsolve.core.manifest.tools_version import (
    CURRENT,
    MINIMUM_SUPPORTED,
    ToolsVersion,
    require_feature,
)
from pkgsolve.core.versions import Requirement, Version, next_patch, parse_version

logger = logging.getLogger(__name__)

DEFAULT_MANIFEST_FILE = "Package.swift"

# DSL 名 -> 规范名
PLATFORM_NAMES: dict[str, str] = {
    "macOS": "macos",
    "macCatalyst": "maccatalyst",
    "iOS": "ios",
    "tvOS": "tvos",
    "watchOS": "watchos",
    "driverKit": "driverkit",
    "linux": "linux",
    "windows": "windows",
    "android": "android",
    "wasi": "wasi",
    "openbsd": "openbsd",
}
DEPLOYMENT_PLATFORMS = frozenset(("macOS", "macCatalyst", "iOS", "tvOS", "watchOS", "driverKit"))

_TARGET_FACTORIES: dict[str, str] = {
    "target": REGULAR,
    "executableTarget": EXECUTABLE,
    "testTarget": TEST,
    "systemLibrary": SYSTEM,
    "binaryTarget": BINARY,
    "plugin": PLUGIN,
}

_SOURCE_TARGET_LABELS = (
    "name", "dependencies", "path", "exclude", "sources", "resources",
    "publicHeadersPath", "cSettings", "cxxSettings", "swiftSettings", "linkerSettings", "plugins",
)
_TARGET_LABELS: dict[str, tuple[str, ...]] = {
    REGULAR: _SOURCE_TARGET_LABELS,
    EXECUTABLE: _SOURCE_TARGET_LABELS,
    TEST: tuple(label for label in _SOURCE_TARGET_LABELS if label != "publicHeadersPath"),
    SYSTEM: ("name", "path", "pkgConfig", "providers"),
    BINARY: ("name", "path", "url", "checksum"),
    PLUGIN: ("name", "capability", "dependencies", "path", "exclude", "sources"),
}

_SETTING_LABELS = {"cSettings": "c", "cxxSettings": "cxx", "swiftSettings": "swift", "linkerSettings": "linker"}
_SETTINGS_BY_TOOL: dict[str, tuple[str, ...]] = {
    "c": ("headerSearchPath", "define", "unsafeFlags"),
    "cxx": ("headerSearchPath", "define", "unsafeFlags"),
    "swift": ("define", "unsafeFlags"),
    "linker": ("linkedLibrary", "linkedFramework", "unsafeFlags"),
}

_VERSION_SPECIFIC_RE = r"^{stem}@swift-(\d+(?:\.\d+){{0,2}})\.swift$"


class _Evaluator:
    """把 AST 求值为 Manifest（按声明的 tools version 做特性门控）"""

    def __init__(
        self,
        declared: ToolsVersion,
        package_root: Path,
        identity_resolver: IdentityResolver,
        path: str,
    ) -> None:
        self.declared = declared
        self.package_root = package_root
        self.identity_resolver = identity_resolver
        self.path = path

    # ------------------------------------------------------------------
    # 通用
    # ------------------------------------------------------------------

    def error(self, node: ast.Node, message: str) -> MalformedDeclarationError:
        return MalformedDeclarationError(message, path=self.path, line=node.line, column=node.column)

    def feature(self, name: str) -> None:
        require_feature(name, self.declared)

    def call(self, node: ast.Node, what: str) -> ast.Call:
        if not isinstance(node, ast.Call):
            raise self.error(node, f"{what} 必须是调用表达式")
        return node

    def args(
        self, call: ast.Call, labels: tuple[str, ...], positional: int = 0,
    ) -> dict[str, ast.Node]:
        """按标签收集参数；无标签参数依次记为 _0、_1 ..."""
        result: dict[str, ast.Node] = {}
        index = 0
        for arg in call.args:
            if arg.label is None:
                if index >= positional:
                    raise self.error(arg, f"'{call.name}' 多余的无标签参数")
                key = f"_{index}"
                index += 1
            else:
                if arg.label not in labels:
                    raise self.error(arg, f"'{call.name}' 不支持参数 '{arg.label}'")
                key = arg.label
            if key in result:
                raise self.error(arg, f"'{call.name}' 参数 '{key}' 重复")
            result[key] = arg.value
        return result

    def string(self, node: ast.Node, what: str) -> str:
        if not isinstance(node, ast.StringLit):
            raise self.error(node, f"{what} 必须是字符串字面量")
        return node.value

    def optional_string(self, node: ast.Node | None, what: str) -> str | None:
        if node is None or isinstance(node, ast.NilLit):
            return None
        return self.string(node, what)

    def array(self, node: ast.Node, what: str) -> tuple[ast.Node, ...]:
        if not isinstance(node, ast.ArrayLit):
            raise self.error(node, f"{what} 必须是数组")
        return node.items

    def strings(self, node: ast.Node, what: str) -> tuple[str, ...]:
        return tuple(self.string(item, what) for item in self.array(node, what))

    def member(self, node: ast.Node, what: str) -> str:
        if not isinstance(node, ast.MemberRef) or node.base is not None:
            raise self.error(node, f"{what} 必须是 .member 形式")
        return node.name

    def version(self, node: ast.Node, what: str) -> Version:
        text = self.string(node, what)
        try:
            return parse_version(text)
        except ValueError as e:
            raise self.error(node, f"{what} 不是有效的语义化版本: {text!r}") from e

    # ------------------------------------------------------------------
    # Package
    # ------------------------------------------------------------------

    def package(self, source: ast.SourceFile) -> dict:
        binding = source.binding("package")
        if binding is None:
            raise MalformedDeclarationError("清单中没有 'let package = Package(...)'", path=self.path)
        call = self.call(binding.value, "package")
        if call.name != "Package" or call.implicit:
            raise self.error(call, "package 必须由 Package(...) 构造")
        a = self.args(call, (
            "name", "defaultLocalization", "platforms", "pkgConfig", "providers", "products",
            "dependencies", "targets", "swiftLanguageVersions", "cLanguageStandard", "cxxLanguageStandard",
        ))
        if "name" not in a:
            raise self.error(call, "Package 缺少 name")

        fields: dict = {"name": self.string(a["name"], "name")}
        if "defaultLocalization" in a:
            self.feature("defaultLocalization")
            fields["default_localization"] = self.optional_string(a["defaultLocalization"], "defaultLocalization")
        if "platforms" in a and not isinstance(a["platforms"], ast.NilLit):
            self.feature("platforms")
            fields["platforms"] = tuple(self.platform(n) for n in self.array(a["platforms"], "platforms"))
        if "pkgConfig" in a:
            fields["pkg_config"] = self.optional_string(a["pkgConfig"], "pkgConfig")
        if "providers" in a and not isinstance(a["providers"], ast.NilLit):
            fields["providers"] = tuple(self.provider(n) for n in self.array(a["providers"], "providers"))
        if "products" in a:
            fields["products"] = tuple(self.product(n) for n in self.array(a["products"], "products"))
        if "dependencies" in a:
            fields["dependencies"] = tuple(
                self.dependency(n) for n in self.array(a["dependencies"], "dependencies")
            )
        if "targets" in a:
            fields["targets"] = tuple(self.target(n) for n in self.array(a["targets"], "targets"))
        if "swiftLanguageVersions" in a and not isinstance(a["swiftLanguageVersions"], ast.NilLit):
            fields["swift_language_versions"] = tuple(
                self.swift_version(n) for n in self.array(a["swiftLanguageVersions"], "swiftLanguageVersions")
            )
        if "cLanguageStandard" in a and not isinstance(a["cLanguageStandard"], ast.NilLit):
            fields["c_language_standard"] = self.member(a["cLanguageStandard"], "cLanguageStandard")
        if "cxxLanguageStandard" in a and not isinstance(a["cxxLanguageStandard"], ast.NilLit):
            fields["cxx_language_standard"] = self.member(a["cxxLanguageStandard"], "cxxLanguageStandard")
        return fields

    def platform(self, node: ast.Node) -> PlatformDescription:
        call = self.call(node, "platform")
        if call.name not in DEPLOYMENT_PLATFORMS:
            raise self.error(call, f"未知平台 '{call.name}'")
        a = self.args(call, (), positional=1)
        if "_0" not in a:
            raise self.error(call, f"平台 '{call.name}' 缺少版本")
        value = a["_0"]
        if isinstance(value, ast.StringLit):
            version = value.value
        else:
            parts = self.member(value, "平台版本").lstrip("v").split("_")
            if not all(p.isdigit() for p in parts):
                raise self.error(value, f"无效的平台版本 '.{value.name}'")
            if len(parts) == 1:
                parts.append("0")
            version = ".".join(parts)
        return PlatformDescription(PLATFORM_NAMES[call.name], version)

    def provider(self, node: ast.Node) -> SystemPackageProvider:
        call = self.call(node, "provider")
        if call.name not in ("brew", "apt", "yum"):
            raise self.error(call, f"未知的系统包来源 '{call.name}'")
        a = self.args(call, (), positional=1)
        if "_0" not in a:
            raise self.error(call, f"'{call.name}' 缺少包列表")
        return SystemPackageProvider(call.name, self.strings(a["_0"], "系统包名"))

    def swift_version(self, node: ast.Node) -> str:
        if isinstance(node, ast.NumberLit):
            return node.text
        if isinstance(node, ast.StringLit):
            return node.value
        if isinstance(node, ast.Call) and node.implicit and node.name == "version":
            a = self.args(node, (), positional=1)
            if "_0" not in a:
                raise self.error(node, ".version 缺少参数")
            return self.string(a["_0"], "语言版本")
        self.feature("swiftLanguageVersions enum")
        name = self.member(node, "语言版本")
        parts = name.lstrip("v").split("_")
        if not name.startswith("v") or not all(p.isdigit() for p in parts):
            raise self.error(node, f"未知的语言版本 '.{name}'")
        return ".".join(parts)

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def product(self, node: ast.Node) -> Product:
        call = self.call(node, "product")
        if call.name == "library":
            a = self.args(call, ("name", "type", "targets"))
            library_type = None
            if "type" in a and not isinstance(a["type"], ast.NilLit):
                library_type = self.member(a["type"], "library type")
                if library_type not in ("static", "dynamic"):
                    raise self.error(a["type"], f"未知的库类型 '.{library_type}'")
        elif call.name in ("executable", "plugin"):
            if call.name == "plugin":
                self.feature("plugin")
            a = self.args(call, ("name", "targets"))
            library_type = None
        else:
            raise self.error(call, f"未知的产品类型 '{call.name}'")
        if "name" not in a:
            raise self.error(call, "product 缺少 name")
        targets = self.strings(a["targets"], "targets") if "targets" in a else ()
        return Product(
            name=self.string(a["name"], "name"),
            type=call.name,
            targets=targets,
            library_type=library_type,
        )

    # ------------------------------------------------------------------
    # Dependencies
    # ------------------------------------------------------------------

    def dependency(self, node: ast.Node) -> PackageDependency:
        call = self.call(node, "dependency")
        if call.name != "package":
            raise self.error(call, f"依赖必须是 .package(...)，实际为 '{call.name}'")
        a = self.args(call, ("name", "url", "path", "from", "branch", "revision", "exact"), positional=1)
        name = None
        if "name" in a:
            self.feature("package(name:)")
            name = self.string(a["name"], "name")

        if "path" in a:
            if "url" in a or len(a) > (2 if name is not None else 1):
                raise self.error(call, ".package(path:) 不接受版本需求")
            self.feature("package(path:)")
            location = normalize_path(self.string(a["path"], "path"), self.package_root)
            kind = FILE_SYSTEM
            requirement = Requirement.unversioned()
        elif "url" in a:
            location = normalize_url(self.string(a["url"], "url"), self.package_root)
            kind = SOURCE_CONTROL
            requirement = self.requirement(call, a)
        else:
            raise self.error(call, ".package 需要 url: 或 path:")

        ref = self.identity_resolver.reference(location, kind)
        return PackageDependency(
            identity=ref.identity,
            kind=kind,
            location=location,
            requirement=requirement,
            name=name,
            effective_location=ref.effective_location,
        )

    def requirement(self, call: ast.Call, a: dict[str, ast.Node]) -> Requirement:
        given = [k for k in ("from", "branch", "revision", "exact", "_0") if k in a]
        if len(given) != 1:
            raise self.error(call, ".package(url:) 需要且只能有一个版本需求")
        key = given[0]
        value = a[key]
        if key == "from":
            return Requirement.up_to_next_major(self.version(value, "from"))
        if key == "branch":
            self.feature("package(url:branch:)")
            return Requirement.branch(self.string(value, "branch"))
        if key == "revision":
            self.feature("package(url:revision:)")
            return Requirement.revision(self.string(value, "revision"))
        if key == "exact":
            return Requirement.exact(self.version(value, "exact"))

        if isinstance(value, ast.RangeLit):
            lower = self.version(value.lower, "区间下界")
            upper = self.version(value.upper, "区间上界")
            if value.closed:
                upper = next_patch(upper)
            try:
                return Requirement.range(lower, upper)
            except ValueError as e:
                raise self.error(value, str(e)) from e
        inner = self.call(value, "版本需求")
        kinds: dict[str, Callable[[ast.Node], Requirement]] = {
            "exact": lambda n: Requirement.exact(self.version(n, "exact")),
            "revision": lambda n: Requirement.revision(self.string(n, "revision")),
            "branch": lambda n: Requirement.branch(self.string(n, "branch")),
        }
        if inner.name in kinds:
            b = self.args(inner, (), positional=1)
            if "_0" not in b:
                raise self.error(inner, f".{inner.name} 缺少参数")
            return kinds[inner.name](b["_0"])
        if inner.name in ("upToNextMajor", "upToNextMinor"):
            b = self.args(inner, ("from",))
            if "from" not in b:
                raise self.error(inner, f".{inner.name} 缺少 from:")
            v = self.version(b["from"], "from")
            if inner.name == "upToNextMajor":
                return Requirement.up_to_next_major(v)
            return Requirement.up_to_next_minor(v)
        raise self.error(inner, f"未知的版本需求 '.{inner.name}'")

    # ------------------------------------------------------------------
    # Targets
    # ------------------------------------------------------------------

    def target(self, node: ast.Node) -> Target:
        call = self.call(node, "target")
        ttype = _TARGET_FACTORIES.get(call.name)
        if ttype is None:
            raise self.error(call, f"未知的目标类型 '{call.name}'")
        if ttype == EXECUTABLE:
            self.feature("executableTarget")
        elif ttype == BINARY:
            self.feature("binaryTarget")
        elif ttype == PLUGIN:
            self.feature("plugin")
        elif ttype == SYSTEM:
            self.feature("systemLibrary")

        a = self.args(call, _TARGET_LABELS[ttype])
        if "name" not in a:
            raise self.error(call, f"'{call.name}' 缺少 name")

        fields: dict = {"name": self.string(a["name"], "name"), "type": ttype}
        if "dependencies" in a:
            fields["dependencies"] = tuple(
                self.target_dependency(n) for n in self.array(a["dependencies"], "dependencies")
            )
        for label, attr in (("path", "path"), ("url", "url"), ("checksum", "checksum"),
                            ("publicHeadersPath", "public_headers_path"), ("pkgConfig", "pkg_config")):
            if label in a:
                fields[attr] = self.optional_string(a[label], label)
        if "exclude" in a:
            fields["exclude"] = self.strings(a["exclude"], "exclude")
        if "sources" in a and not isinstance(a["sources"], ast.NilLit):
            fields["sources"] = self.strings(a["sources"], "sources")
        if "resources" in a and not isinstance(a["resources"], ast.NilLit):
            self.feature("resources")
            fields["resources"] = tuple(self.resource(n) for n in self.array(a["resources"], "resources"))
        if "providers" in a and not isinstance(a["providers"], ast.NilLit):
            fields["providers"] = tuple(self.provider(n) for n in self.array(a["providers"], "providers"))
        if "capability" in a:
            fields["plugin_capability"] = self.capability(a["capability"])
        elif ttype == PLUGIN:
            raise self.error(call, "plugin 目标缺少 capability")
        if "plugins" in a and not isinstance(a["plugins"], ast.NilLit):
            self.feature("plugin usages")
            fields["plugin_usages"] = tuple(self.plugin_usage(n) for n in self.array(a["plugins"], "plugins"))

        settings: list[BuildSetting] = []
        for label, tool in _SETTING_LABELS.items():
            if label in a and not isinstance(a[label], ast.NilLit):
                self.feature("build settings")
                settings.extend(self.setting(tool, n) for n in self.array(a[label], label))
        fields["settings"] = tuple(settings)

        if ttype == BINARY and not (fields.get("path") or (fields.get("url") and fields.get("checksum"))):
            raise self.error(call, "binaryTarget 需要 path: 或 url: + checksum:")
        return Target(**fields)

    def condition(self, node: ast.Node) -> PackageCondition:
        call = self.call(node, "condition")
        if call.name != "when" or not call.implicit:
            raise self.error(call, "条件必须是 .when(...)")
        a = self.args(call, ("platforms", "configuration"))
        if not a:
            raise self.error(call, ".when 至少需要 platforms: 或 configuration:")
        platforms: tuple[str, ...] = ()
        if "platforms" in a:
            names = []
            for item in self.array(a["platforms"], "platforms"):
                dsl = self.member(item, "platform")
                if dsl not in PLATFORM_NAMES:
                    raise self.error(item, f"未知平台 '.{dsl}'")
                names.append(PLATFORM_NAMES[dsl])
            platforms = tuple(names)
        configuration = None
        if "configuration" in a:
            configuration = self.member(a["configuration"], "configuration")
            if configuration not in ("debug", "release"):
                raise self.error(a["configuration"], f"未知配置 '.{configuration}'")
        return PackageCondition(platforms=platforms, configuration=configuration)

    def target_dependency(self, node: ast.Node) -> TargetDependency:
        if isinstance(node, ast.StringLit):
            return TargetDependency("byName", node.value)
        call = self.call(node, "target dependency")
        if call.name not in ("target", "product", "byName"):
            raise self.error(call, f"未知的目标依赖 '{call.name}'")
        a = self.args(call, ("name", "package", "condition"))
        if "name" not in a:
            raise self.error(call, f".{call.name} 缺少 name")
        package = None
        if "package" in a:
            if call.name != "product":
                raise self.error(a["package"], f".{call.name} 不支持 package:")
            self.feature(".product(name:package:)")
            package = self.optional_string(a["package"], "package")
        condition = None
        if "condition" in a:
            self.feature("target dependency condition")
            condition = self.condition(a["condition"])
        return TargetDependency(call.name, self.string(a["name"], "name"), package, condition)

    def resource(self, node: ast.Node) -> Resource:
        call = self.call(node, "resource")
        if call.name not in ("process", "copy"):
            raise self.error(call, f"未知的资源规则 '{call.name}'")
        labels = ("localization",) if call.name == "process" else ()
        a = self.args(call, labels, positional=1)
        if "_0" not in a:
            raise self.error(call, f".{call.name} 缺少路径")
        localization = None
        if "localization" in a:
            localization = self.member(a["localization"], "localization")
            if localization not in ("base", "default"):
                raise self.error(a["localization"], f"未知的本地化 '.{localization}'")
        return Resource(call.name, self.string(a["_0"], "资源路径"), localization)

    def setting(self, tool: str, node: ast.Node) -> BuildSetting:
        call = self.call(node, "setting")
        if call.name not in _SETTINGS_BY_TOOL[tool]:
            raise self.error(call, f"{tool} 设置不支持 '.{call.name}'")
        labels = ("to",) if call.name == "define" and tool != "swift" else ()
        a = self.args(call, labels, positional=2)
        if "_0" not in a:
            raise self.error(call, f".{call.name} 缺少参数")
        if call.name == "unsafeFlags":
            value = self.strings(a["_0"], "flags")
        else:
            text = self.string(a["_0"], call.name)
            if "to" in a:
                to = self.optional_string(a["to"], "to")
                if to is not None:
                    text = f"{text}={to}"
            value = (text,)
        condition = self.condition(a["_1"]) if "_1" in a else None
        return BuildSetting(tool, call.name, value, condition)

    def capability(self, node: ast.Node) -> PluginCapability:
        call = self.call(node, "capability")
        if call.name == "buildTool":
            self.args(call, ())
            return PluginCapability("buildTool")
        if call.name == "command":
            self.feature("command plugin")
            a = self.args(call, ("intent",))
            if "intent" not in a:
                raise self.error(call, ".command 缺少 intent:")
            intent = self.call(a["intent"], "intent")
            if intent.name != "custom":
                raise self.error(intent, f"未知的命令意图 '.{intent.name}'")
            b = self.args(intent, ("verb", "description"))
            if "verb" not in b:
                raise self.error(intent, ".custom 缺少 verb:")
            description = self.string(b["description"], "description") if "description" in b else ""
            return PluginCapability("command", self.string(b["verb"], "verb"), description)
        raise self.error(call, f"未知的插件能力 '.{call.name}'")

    def plugin_usage(self, node: ast.Node) -> PluginUsage:
        if isinstance(node, ast.StringLit):
            return PluginUsage(node.value)
        call = self.call(node, "plugin usage")
        if call.name != "plugin":
            raise self.error(call, f"未知的插件用法 '.{call.name}'")
        a = self.args(call, ("name", "package"))
        if "name" not in a:
            raise self.error(call, ".plugin 缺少 name")
        return PluginUsage(self.string(a["name"], "name"), self.optional_string(a.get("package"), "package"))


def _validate(manifest: Manifest, path: str) -> None:
    """模型级校验：目标 / 产品重名，产品引用未知目标"""
    seen: set[str] = set()
    for t in manifest.targets:
        if t.name in seen:
            raise MalformedDeclarationError(f"目标重名: '{t.name}'", path=path)
        seen.add(t.name)
    products: set[str] = set()
    for p in manifest.products:
        if p.name in products:
            raise MalformedDeclarationError(f"产品重名: '{p.name}'", path=path)
        products.add(p.name)
        for name in p.targets:
            if name not in seen:
                raise MalformedDeclarationError(f"产品 '{p.name}' 引用了未知目标 '{name}'", path=path)


class ManifestLoader:
    """清单加载器"""

    def __init__(self, manifest_file: str = DEFAULT_MANIFEST_FILE) -> None:
        self.manifest_file = manifest_file
        stem = re.escape(Path(manifest_file).stem)
        self._version_specific = re.compile(_VERSION_SPECIFIC_RE.format(stem=stem))

    def find_manifest(self, package_root: Path, tools_version: ToolsVersion = CURRENT) -> Path:
        """定位清单文件；版本专用清单取不高于当前 tools version 的最高者"""
        root = Path(package_root)
        best: tuple[ToolsVersion, Path] | None = None
        if root.is_dir():
            for child in root.iterdir():
                m = self._version_specific.match(child.name)
                if m is None or not child.is_file():
                    continue
                v = ToolsVersion.parse(m.group(1))
                if v <= tools_version and (best is None or v > best[0]):
                    best = (v, child)
        if best is not None:
            return best[1]
        path = root / self.manifest_file
        if not path.is_file():
            raise ManifestNotFoundError(f"未找到清单文件: {path}")
        return path

    def load(
        self,
        package_root: Path | str,
        identity: PackageIdentity,
        kind: str,
        location: str,
        version: Version | None = None,
        revision: str | None = None,
        tools_version: ToolsVersion = CURRENT,
        identity_resolver: IdentityResolver | None = None,
    ) -> Manifest:
        """读取并求值包根目录下的清单"""
        root = Path(package_root)
        path = self.find_manifest(root, tools_version)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise MalformedDeclarationError(f"无法读取清单: {e}", path=str(path)) from e
        manifest = self.load_text(
            text,
            package_root=root,
            identity=identity,
            kind=kind,
            location=location,
            version=version,
            revision=revision,
            tools_version=tools_version,
            identity_resolver=identity_resolver,
            path=str(path),
        )
        logger.debug("清单已加载: %s (tools %s)", path, manifest.tools_version)
        return manifest

    def load_text(
        self,
        text: str,
        *,
        package_root: Path | str,
        identity: PackageIdentity,
        kind: str,
        location: str,
        version: Version | None = None,
        revision: str | None = None,
        tools_version: ToolsVersion = CURRENT,
        identity_resolver: IdentityResolver | None = None,
        path: str = "",
    ) -> Manifest:
        """对已读入的清单文本求值"""
        first_line = text.lstrip("﻿").split("\n", 1)[0]
        declared = ToolsVersion.from_marker(first_line)
        if declared is None:
            raise MalformedDeclarationError("首行缺少 swift-tools-version 标记", path=path, line=1, column=1)
        if declared > tools_version:
            raise ToolsVersionMismatchError(
                f"{path or identity}: 清单要求 tools version {declared}，当前为 {tools_version}"
            )
        if declared < MINIMUM_SUPPORTED:
            raise ToolsVersionMismatchError(
                f"{path or identity}: tools version {declared} 已不再支持（最低 {MINIMUM_SUPPORTED}）"
            )

        source = ast.parse(text, path)
        evaluator = _Evaluator(declared, Path(package_root), identity_resolver or IdentityResolver(), path)
        fields = evaluator.package(source)
        manifest = Manifest(
            tools_version=declared,
            identity=identity,
            package_kind=kind,
            location=location,
            path=path,
            version=version,
            revision=revision,
            **fields,
        )
        _validate(manifest, path)
        return manifest


__all__ = ["DEFAULT_MANIFEST_FILE", "ManifestLoader", "PLATFORM_NAMES"]
