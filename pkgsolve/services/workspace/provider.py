"""基于仓库缓存的解析数据源

职责：
- 每个远程包在 <build>/repositories/<identity> 维护一份缓存 clone
  （从生效位置即镜像地址克隆；已存在时每个 provider 实例只 fetch 一次）
- tag -> 版本映射
- 按 (identity, revision) 缓存清单；已提交 revision 的清单不会变
- 本地路径包直接从路径加载清单

不同标识可并发调用；同一标识的仓库操作由标识级锁串行化。
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any

from pkgsolve.core.exceptions import CheckoutFailedError
from pkgsolve.core.identity import FILE_SYSTEM, SOURCE_CONTROL, IdentityResolver, PackageIdentity, PackageReference
from pkgsolve.core.manifest.loader import ManifestLoader
from pkgsolve.core.manifest.models import Manifest
from pkgsolve.core.manifest.tools_version import CURRENT, ToolsVersion
from pkgsolve.core.protocols import RepositoryManager
from pkgsolve.core.resolver.constraints import BRANCH, REVISION, BoundVersion
from pkgsolve.core.versions import Version, version_from_tag

logger = logging.getLogger(__name__)


class RepositoryPackageProvider:
    """PackageProvider 的仓库实现"""

    def __init__(
        self,
        repositories: RepositoryManager,
        cache_dir: Path,
        loader: ManifestLoader | None = None,
        identity_resolver: IdentityResolver | None = None,
        tools_version: ToolsVersion = CURRENT,
    ) -> None:
        self.repositories = repositories
        self.cache_dir = Path(cache_dir)
        self.loader = loader or ManifestLoader()
        self.identity_resolver = identity_resolver or IdentityResolver()
        self.tools_version = tools_version

        self._guard = threading.Lock()
        self._locks: dict[PackageIdentity, threading.Lock] = {}
        self._handles: dict[PackageIdentity, Any] = {}
        self._tags: dict[PackageIdentity, dict[Version, str]] = {}
        self._manifests: dict[tuple[PackageIdentity, str], Manifest] = {}

    def _lock_for(self, identity: PackageIdentity) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(identity, threading.Lock())

    def repository_path(self, identity: PackageIdentity) -> Path:
        return self.cache_dir / identity.value

    def _handle(self, ref: PackageReference) -> Any:
        """调用方须持有该标识的锁"""
        handle = self._handles.get(ref.identity)
        if handle is not None:
            return handle
        dest = self.repository_path(ref.identity)
        if (dest / ".git").exists():
            # 镜像可能在首次 clone 之后才配置
            handle = self.repositories.set_remote(self.repositories.open(dest), ref.effective_location)
            self.repositories.fetch(handle)
        else:
            handle = self.repositories.clone(ref.effective_location, dest)
        self._handles[ref.identity] = handle
        return handle

    # ------------------------------------------------------------------
    # PackageProvider
    # ------------------------------------------------------------------

    def available_versions(self, ref: PackageReference) -> list[Version]:
        if ref.is_local:
            return []
        with self._lock_for(ref.identity):
            return sorted(self._tag_map(ref), reverse=True)

    def _tag_map(self, ref: PackageReference) -> dict[Version, str]:
        """版本 -> tag 名；同一版本有多个 tag 时取与版本文本一致的那个"""
        cached = self._tags.get(ref.identity)
        if cached is not None:
            return cached
        handle = self._handle(ref)
        mapping: dict[Version, str] = {}
        for tag in sorted(self.repositories.tags(handle)):
            version = version_from_tag(tag)
            if version is None:
                continue
            if version not in mapping or tag == str(version):
                mapping[version] = tag
        self._tags[ref.identity] = mapping
        logger.debug("%s: %d 个版本 tag", ref.identity, len(mapping))
        return mapping

    def resolve_revision(self, ref: PackageReference, bound: BoundVersion) -> str:
        if ref.is_local:
            return ""
        with self._lock_for(ref.identity):
            return self._resolve_revision(ref, bound)

    def _resolve_revision(self, ref: PackageReference, bound: BoundVersion) -> str:
        handle = self._handle(ref)
        if bound.version is not None:
            tag = self._tag_map(ref).get(bound.version)
            if tag is None:
                raise CheckoutFailedError(f"{ref} 没有版本 {bound.version} 对应的 tag", identity=ref.identity.value)
            return self.repositories.resolve_revision(handle, tag)
        if bound.kind == BRANCH and bound.revision:
            return self.repositories.resolve_revision(handle, bound.revision)
        if bound.kind in (BRANCH, REVISION):
            return self.repositories.resolve_revision(handle, bound.ref)
        raise ValueError(f"远程包不能绑定为 {bound.kind}")

    def manifest(self, ref: PackageReference, bound: BoundVersion) -> Manifest:
        if ref.is_local:
            return self.loader.load(
                Path(ref.location),
                identity=ref.identity,
                kind=FILE_SYSTEM,
                location=ref.location,
                tools_version=self.tools_version,
                identity_resolver=self.identity_resolver,
            )

        with self._lock_for(ref.identity):
            revision = self._resolve_revision(ref, bound)
            key = (ref.identity, revision)
            cached = self._manifests.get(key)
            if cached is not None:
                return cached
            handle = self._handle(ref)
            self.repositories.checkout(handle, revision)
            manifest = self.loader.load(
                self.repository_path(ref.identity),
                identity=ref.identity,
                kind=SOURCE_CONTROL,
                location=ref.location,
                version=bound.version,
                revision=revision,
                tools_version=self.tools_version,
                identity_resolver=self.identity_resolver,
            )
            self._manifests[key] = manifest
            return manifest
