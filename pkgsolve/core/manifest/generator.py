"""清单模型 -> 源文本

与 loader 互逆：对任意可加载的清单 M，load(generate(M)) == M。
生成器不判断特性是否可用，特性门控只在加载时做一次。

文本由 Fragment 树渲染：单行放不下时自动折行，每级缩进 4 个空格。
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from pkgsolve.core.manifest.loader import PLATFORM_NAMES
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
from pkgsolve.core.manifest.tools_version import FEATURES, MINIMUM_SUPPORTED
from pkgsolve.core.versions import Requirement, next_major, next_minor

INDENT = "    "
MAX_LINE = 100

_DSL_PLATFORMS = {canonical: dsl for dsl, canonical in PLATFORM_NAMES.items()}
_TARGET_FACTORIES = {
    REGULAR: "target",
    EXECUTABLE: "executableTarget",
    TEST: "testTarget",
    SYSTEM: "systemLibrary",
    BINARY: "binaryTarget",
    PLUGIN: "plugin",
}
_SETTING_LABELS = (("c", "cSettings"), ("cxx", "cxxSettings"), ("swift", "swiftSettings"), ("linker", "linkerSettings"))
_MAJOR_MINOR_RE = re.compile(r"^(\d+)\.(\d+)$")


class SourceGenerationError(RuntimeError):
    """模型无法表示为源文本（属于调用方的编程错误）"""


# =========================================================================
# Fragment
# =========================================================================


@dataclass
class Fragment:
    """源文本片段

    subnodes 为 None 时是原子文本；否则按 delimiters 包裹子片段。
    multiline 为 None 时按行宽自动决定。
    """

    text: str = ""
    label: str | None = None
    delimiters: str = "()"
    subnodes: list[Fragment] | None = None
    multiline: bool | None = None

    def _prefix(self) -> str:
        return f"{self.label}: {self.text}" if self.label else self.text

    def _single_line(self) -> str:
        if self.subnodes is None:
            return self._prefix()
        inner = ", ".join(n._single_line() for n in self.subnodes)
        return f"{self._prefix()}{self.delimiters[0]}{inner}{self.delimiters[1]}"

    def render(self, indent: int = 0) -> str:
        if self.subnodes is None or not self.subnodes:
            return self._single_line()
        multiline = self.multiline
        if multiline is None:
            multiline = len(INDENT * indent) + len(self._single_line()) > MAX_LINE
        if not multiline:
            return self._single_line()
        pad = INDENT * (indent + 1)
        inner = ",\n".join(pad + n.render(indent + 1) for n in self.subnodes)
        return f"{self._prefix()}{self.delimiters[0]}\n{inner}\n{INDENT * indent}{self.delimiters[1]}"


def _atom(text: str, label: str | None = None) -> Fragment:
    return Fragment(text=text, label=label)


def _call(name: str, args: list[Fragment], label: str | None = None, multiline: bool | None = None) -> Fragment:
    return Fragment(text=name, label=label, delimiters="()", subnodes=args, multiline=multiline)


def _array(items: list[Fragment], label: str | None = None, multiline: bool | None = None) -> Fragment:
    return Fragment(label=label, delimiters="[]", subnodes=items, multiline=multiline)


def quote(value: str) -> str:
    """字符串字面量，必要时转义"""
    out = ['"']
    for ch in value:
        if ch == "\\":
            out.append("\\\\")
        elif ch == '"':
            out.append('\\"')
        elif ch == "\n":
            out.append("\\n")
        elif ch == "\t":
            out.append("\\t")
        elif ch == "\r":
            out.append("\\r")
        elif ch == "\0":
            out.append("\\0")
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            out.append(f"\\u{{{ord(ch):x}}}")
        else:
            out.append(ch)
    out.append('"')
    return "".join(out)


def _string(value: str, label: str | None = None) -> Fragment:
    return _atom(quote(value), label)


def _strings(values: tuple[str, ...], label: str | None = None) -> Fragment:
    return _array([_string(v) for v in values], label)


# =========================================================================
# 各类声明
# =========================================================================


def _platform_version(version: str) -> Fragment:
    m = _MAJOR_MINOR_RE.match(version)
    if m is None:
        return _string(version)
    major, minor = m.groups()
    return _atom(f".v{major}" if minor == "0" else f".v{major}_{minor}")


def _platform(platform: PlatformDescription) -> Fragment:
    dsl = _DSL_PLATFORMS.get(platform.name)
    if dsl is None:
        raise SourceGenerationError(f"未知平台: {platform.name}")
    return _call(f".{dsl}", [_platform_version(platform.version)])


def _provider(provider: SystemPackageProvider) -> Fragment:
    return _call(f".{provider.kind}", [_strings(provider.packages)])


def _product(product: Product) -> Fragment:
    args = [_string(product.name, "name")]
    if product.type == "library" and product.library_type:
        args.append(_atom(f".{product.library_type}", "type"))
    args.append(_strings(product.targets, "targets"))
    return _call(f".{product.type}", args)


def _requirement(req: Requirement) -> Fragment:
    if req.kind == "range":
        if req.lower is None or req.upper is None:
            raise SourceGenerationError(f"版本区间缺少边界: {req}")
        if req.upper == next_major(req.lower):
            return _string(str(req.lower), "from")
        if req.upper == next_minor(req.lower):
            return _call(".upToNextMinor", [_string(str(req.lower), "from")])
        return _atom(f"{quote(str(req.lower))}..<{quote(str(req.upper))}")
    if req.kind == "exact":
        return _call(".exact", [_string(str(req.lower))])
    if req.kind in ("revision", "branch"):
        return _call(f".{req.kind}", [_string(req.ref)])
    raise SourceGenerationError(f"远程依赖不能是 {req.kind} 需求")


def _dependency(dep: PackageDependency) -> Fragment:
    args: list[Fragment] = []
    if dep.name is not None:
        args.append(_string(dep.name, "name"))
    if dep.is_local:
        if dep.requirement.kind != "unversioned":
            raise SourceGenerationError(f"本地依赖 {dep.location} 不能带版本需求")
        args.append(_string(dep.location, "path"))
    else:
        args.append(_string(dep.location, "url"))
        args.append(_requirement(dep.requirement))
    return _call(".package", args)


def _condition(condition: PackageCondition) -> Fragment:
    args: list[Fragment] = []
    if condition.platforms:
        items = []
        for name in condition.platforms:
            dsl = _DSL_PLATFORMS.get(name)
            if dsl is None:
                raise SourceGenerationError(f"未知平台: {name}")
            items.append(_atom(f".{dsl}"))
        args.append(_array(items, "platforms"))
    if condition.configuration:
        args.append(_atom(f".{condition.configuration}", "configuration"))
    return _call(".when", args)


def _target_dependency(dep: TargetDependency) -> Fragment:
    if dep.kind == "byName" and dep.condition is None:
        return _string(dep.name)
    args = [_string(dep.name, "name")]
    if dep.package is not None:
        args.append(_string(dep.package, "package"))
    if dep.condition is not None:
        args.append(_condition(dep.condition))
        args[-1].label = "condition"
    return _call(f".{dep.kind}", args)


def _resource(resource: Resource) -> Fragment:
    args = [_string(resource.path)]
    if resource.localization:
        args.append(_atom(f".{resource.localization}", "localization"))
    return _call(f".{resource.rule}", args)


def _setting(setting: BuildSetting) -> Fragment:
    if setting.name == "unsafeFlags":
        args = [_strings(setting.value)]
    elif setting.name == "define" and setting.tool != "swift" and "=" in setting.value[0]:
        name, value = setting.value[0].split("=", 1)
        args = [_string(name), _string(value, "to")]
    else:
        args = [_string(setting.value[0])]
    if setting.condition is not None:
        args.append(_condition(setting.condition))
    return _call(f".{setting.name}", args)


def _capability(capability: PluginCapability) -> Fragment:
    if capability.kind == "buildTool":
        return _call(".buildTool", [], "capability")
    intent = [_string(capability.verb, "verb"), _string(capability.description, "description")]
    return _call(".command", [_call(".custom", intent, "intent")], "capability")


def _plugin_usage(usage: PluginUsage) -> Fragment:
    args = [_string(usage.name, "name")]
    if usage.package is not None:
        args.append(_string(usage.package, "package"))
    return _call(".plugin", args)


def _target(target: Target) -> Fragment:
    factory = _TARGET_FACTORIES.get(target.type)
    if factory is None:
        raise SourceGenerationError(f"未知目标类型: {target.type}")
    args = [_string(target.name, "name")]
    if target.dependencies:
        args.append(_array([_target_dependency(d) for d in target.dependencies], "dependencies"))
    if target.path is not None:
        args.append(_string(target.path, "path"))
    if target.url is not None:
        args.append(_string(target.url, "url"))
    if target.exclude:
        args.append(_strings(target.exclude, "exclude"))
    if target.sources is not None:
        args.append(_strings(target.sources, "sources"))
    if target.resources:
        args.append(_array([_resource(r) for r in target.resources], "resources"))
    if target.public_headers_path is not None:
        args.append(_string(target.public_headers_path, "publicHeadersPath"))
    if target.pkg_config is not None:
        args.append(_string(target.pkg_config, "pkgConfig"))
    if target.providers:
        args.append(_array([_provider(p) for p in target.providers], "providers"))
    if target.plugin_capability is not None:
        args.append(_capability(target.plugin_capability))
    for tool, label in _SETTING_LABELS:
        settings = target.settings_for(tool)
        if settings:
            args.append(_array([_setting(s) for s in settings], label))
    if target.plugin_usages:
        args.append(_array([_plugin_usage(u) for u in target.plugin_usages], "plugins"))
    if target.checksum is not None:
        args.append(_string(target.checksum, "checksum"))
    return _call(f".{factory}", args)


def _swift_version(version: str, enum_form: bool) -> Fragment:
    if not enum_form:
        return _atom(version) if version.isdigit() else _string(version)
    if version in ("4", "4.2", "5"):
        return _atom(".v" + version.replace(".", "_"))
    return _call(".version", [_string(version)])


# =========================================================================
# 入口
# =========================================================================


def generate(manifest: Manifest) -> str:
    """渲染完整清单文本（以换行结尾）"""
    if manifest.tools_version < MINIMUM_SUPPORTED:
        raise SourceGenerationError(f"tools version {manifest.tools_version} 不受支持")

    args: list[Fragment] = [_string(manifest.name, "name")]
    if manifest.default_localization is not None:
        args.append(_string(manifest.default_localization, "defaultLocalization"))
    if manifest.platforms:
        args.append(_array([_platform(p) for p in manifest.platforms], "platforms", multiline=True))
    if manifest.pkg_config is not None:
        args.append(_string(manifest.pkg_config, "pkgConfig"))
    if manifest.providers:
        args.append(_array([_provider(p) for p in manifest.providers], "providers"))
    if manifest.products:
        args.append(_array([_product(p) for p in manifest.products], "products", multiline=True))
    if manifest.dependencies:
        args.append(_array([_dependency(d) for d in manifest.dependencies], "dependencies", multiline=True))
    if manifest.targets:
        args.append(_array([_target(t) for t in manifest.targets], "targets", multiline=True))
    if manifest.swift_language_versions is not None:
        enum_form = manifest.tools_version >= FEATURES["swiftLanguageVersions enum"]
        args.append(_array(
            [_swift_version(v, enum_form) for v in manifest.swift_language_versions],
            "swiftLanguageVersions",
        ))
    if manifest.c_language_standard is not None:
        args.append(_atom(f".{manifest.c_language_standard}", "cLanguageStandard"))
    if manifest.cxx_language_standard is not None:
        args.append(_atom(f".{manifest.cxx_language_standard}", "cxxLanguageStandard"))

    package = _call("Package", args, multiline=True)
    lines = [
        manifest.tools_version.marker,
        "import PackageDescription",
        "",
        f"let package = {package.render()}",
    ]
    return "\n".join(lines) + "\n"


__all__ = ["Fragment", "SourceGenerationError", "generate", "quote"]
