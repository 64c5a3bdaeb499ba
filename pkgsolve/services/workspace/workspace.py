"""工作空间管理

状态机（单个工作空间根目录）::

    UNRESOLVED -> RESOLVING -> RESOLVED -> CHECKOUTS_PENDING -> READY

职责：
- load():    pins 仍满足根清单的依赖图则直接复用，否则以 pins 为偏好重新解析
- update():  忽略 pins 重新解析；指定包名时只放开这些包的偏好
- 解析成功才原子写入 pins，失败时旧文件不动、状态回到 UNRESOLVED
- 按 pins 物化 checkout（镜像地址拉取，pins 只记原始位置）
- 依赖图展示、已管理依赖列表
"""

from __future__ import annotations

import json
import logging
import threading
from collections import deque
from collections.abc import Sequence
from enum import Enum
from pathlib import Path
from typing import Any

from pkgsolve.core.config import Config, get_config
from pkgsolve.core.exceptions import PkgSolveError
from pkgsolve.core.identity import (
    IdentityResolver,
    PackageIdentity,
    identity_for_location,
)
from pkgsolve.core.manifest.loader import ManifestLoader
from pkgsolve.core.manifest.models import Manifest
from pkgsolve.core.manifest.tools_version import ToolsVersion
from pkgsolve.core.protocols import RepositoryManager
from pkgsolve.core.resolver.constraints import BoundVersion
from pkgsolve.core.resolver.graph import DependencyGraph
from pkgsolve.core.resolver.solver import DependencyResolver, Resolution
from pkgsolve.services.workspace.checkout import CheckoutJournal, CheckoutManager
from pkgsolve.services.workspace.mirrors import MirrorConfig
from pkgsolve.services.workspace.pins import PinsStore, ResolvedPin
from pkgsolve.services.workspace.provider import RepositoryPackageProvider
from pkgsolve.services.workspace.sources import GitRepositoryManager

logger = logging.getLogger(__name__)


class WorkspaceState(str, Enum):
    UNRESOLVED = "unresolved"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    CHECKOUTS_PENDING = "checkouts-pending"
    READY = "ready"


class Workspace:
    """一个根包的工作空间"""

    def __init__(
        self,
        root: str | Path,
        *,
        config: Config | None = None,
        repositories: RepositoryManager | None = None,
        loader: ManifestLoader | None = None,
    ) -> None:
        self.root = Path(root).absolute()
        self.config = config or get_config()
        self.tools_version = ToolsVersion.parse(self.config.tools_version)
        self.loader = loader or ManifestLoader(self.config.manifest_file)
        self.repositories = repositories or GitRepositoryManager(timeout=self.config.git_timeout)

        self.mirror_config = MirrorConfig(self.root / self.config.mirrors_file)
        self.identity_resolver = IdentityResolver(self.mirror_config.load())
        self.pins_store = PinsStore(self.root / self.config.pins_file, self.identity_resolver)

        build = self.config.build_path(self.root)
        self.checkouts = CheckoutManager(
            self.repositories,
            self.config.checkouts_path(self.root),
            CheckoutJournal(build / self.config.state_file),
            self.identity_resolver,
            max_workers=self.config.max_workers,
        )
        self.provider = self._new_provider()

        self.state = WorkspaceState.UNRESOLVED
        self.pins: dict[PackageIdentity, ResolvedPin] = {}
        self.graph: DependencyGraph | None = None
        self.resolution: Resolution | None = None
        self._lock = threading.RLock()

    def _new_provider(self) -> RepositoryPackageProvider:
        return RepositoryPackageProvider(
            self.repositories,
            self.config.repositories_path(self.root),
            loader=self.loader,
            identity_resolver=self.identity_resolver,
            tools_version=self.tools_version,
        )

    def _transition(self, state: WorkspaceState) -> None:
        if state != self.state:
            logger.debug("工作空间状态: %s -> %s", self.state.value, state.value)
        self.state = state

    @property
    def identity(self) -> PackageIdentity:
        return identity_for_location(str(self.root))

    def root_manifest(self) -> Manifest:
        return self.loader.load(
            self.root,
            identity=self.identity,
            kind="root",
            location=str(self.root),
            tools_version=self.tools_version,
            identity_resolver=self.identity_resolver,
        )

    # ------------------------------------------------------------------
    # 状态迁移
    # ------------------------------------------------------------------

    def load(self, *, checkout: bool = True) -> dict[PackageIdentity, Path]:
        """首次使用：复用仍有效的 pins，否则重新解析；随后物化 checkout"""
        with self._lock:
            self._settle(self.root_manifest())
            return self._materialize() if checkout else {}

    def _settle(self, manifest: Manifest) -> DependencyGraph:
        pins = self.pins_store.load()
        graph = self._graph_from_pins(manifest, pins) if pins or not manifest.dependencies else None
        if graph is not None:
            logger.info("pins 仍然有效，复用 %d 个 pin", len(pins))
            self.pins, self.graph, self.resolution = pins, graph, None
            self._transition(WorkspaceState.RESOLVED)
            return graph
        preferred = {i: p.bound for i, p in pins.items()}
        return self._resolve(manifest, preferred).graph

    def update(self, packages: Sequence[str] | None = None, *, checkout: bool = True) -> dict[PackageIdentity, Path]:
        """重新解析；packages 为空时完全忽略 pins，否则只放开指定包"""
        with self._lock:
            manifest = self.root_manifest()
            # 新的 provider 实例会重新 fetch，看到新 tag
            self.provider = self._new_provider()
            preferred: dict[PackageIdentity, BoundVersion] = {}
            if packages:
                pins = self.pins_store.load()
                names = self._identities_for(packages, pins)
                unknown = sorted(str(n) for n in names - set(pins))
                if unknown:
                    logger.warning("以下包没有 pin，忽略: %s", ", ".join(unknown))
                preferred = {i: p.bound for i, p in pins.items() if i not in names}
            self._resolve(manifest, preferred)
            return self._materialize() if checkout else {}

    def _identities_for(
        self, packages: Sequence[str], pins: dict[PackageIdentity, ResolvedPin],
    ) -> set[PackageIdentity]:
        """包名或位置 -> 图中的标识（经过镜像）；包名也匹配 pin 原始位置的标识"""
        names: set[PackageIdentity] = set()
        for p in packages:
            identity = self.identity_resolver.resolve_identity(p)
            plain = identity_for_location(p)
            matched = {
                i for i, pin in pins.items()
                if i == identity or identity_for_location(pin.location) == plain
            }
            names |= matched or {identity}
        return names

    def _resolve(self, manifest: Manifest, preferred: dict[PackageIdentity, BoundVersion]) -> Resolution:
        self._transition(WorkspaceState.RESOLVING)
        try:
            resolver = DependencyResolver(self.provider, max_workers=self.config.max_workers)
            resolution = resolver.resolve(manifest, preferred=preferred)
            pins = self._pins_from(resolution)
            self.pins_store.save(pins.values())
        except PkgSolveError:
            self._transition(WorkspaceState.UNRESOLVED)
            raise
        self.pins, self.graph, self.resolution = pins, resolution.graph, resolution
        self._transition(WorkspaceState.RESOLVED)
        return resolution

    def _pins_from(self, resolution: Resolution) -> dict[PackageIdentity, ResolvedPin]:
        pins: dict[PackageIdentity, ResolvedPin] = {}
        for b in resolution.bindings:
            if b.ref.is_local:
                continue
            pins[b.ref.identity] = ResolvedPin(
                identity=b.ref.identity,
                package=b.manifest.name,
                location=b.ref.location,
                revision=self.provider.resolve_revision(b.ref, b.bound),
                version=b.bound.version,
                branch=b.bound.ref if b.bound.kind == "branch" else None,
            )
        return pins

    def _materialize(self) -> dict[PackageIdentity, Path]:
        self._transition(WorkspaceState.CHECKOUTS_PENDING)
        paths = self.checkouts.materialize(list(self.pins.values()))
        self.checkouts.prune(keep=self.pins)
        self._transition(WorkspaceState.READY)
        return paths

    # ------------------------------------------------------------------
    # pins 有效性
    # ------------------------------------------------------------------

    def _graph_from_pins(
        self, manifest: Manifest, pins: dict[PackageIdentity, ResolvedPin],
    ) -> DependencyGraph | None:
        """沿 pins 遍历根清单的依赖图；任一需求不被 pin 满足或 pins 有多余项返回 None"""
        root_identity = manifest.identity or self.identity
        local_overrides = {d.identity for d in manifest.dependencies if d.is_local}
        graph = DependencyGraph(root_identity)
        queue: deque[tuple[PackageIdentity, Manifest]] = deque([(root_identity, manifest)])
        expanded = {root_identity}
        reached: set[PackageIdentity] = set()

        while queue:
            source, current = queue.popleft()
            for dep in current.dependencies:
                if dep.identity == root_identity:
                    return None
                if source != root_identity and dep.identity in local_overrides:
                    graph.add_edge(source, dep.identity, dep.requirement)
                    continue
                if dep.is_local:
                    bound = BoundVersion.unversioned()
                    label = "local"
                else:
                    pin = pins.get(dep.identity)
                    if pin is None or not pin.satisfies(dep.requirement):
                        logger.info("pins 已过期: %s 需要 %s (%s)", source, dep.identity, dep.requirement)
                        return None
                    reached.add(dep.identity)
                    bound = BoundVersion.of_revision(pin.revision)
                    label = pin.describe()
                graph.add_node(dep.reference, label)
                graph.add_edge(source, dep.identity, dep.requirement)
                if dep.identity not in expanded:
                    expanded.add(dep.identity)
                    queue.append((dep.identity, self.provider.manifest(dep.reference, bound)))

        if reached != set(pins):
            logger.info("pins 中有不再需要的包: %s", ", ".join(str(i) for i in sorted(set(pins) - reached)))
            return None
        return graph

    # ------------------------------------------------------------------
    # 展示
    # ------------------------------------------------------------------

    def dependency_graph(self) -> DependencyGraph:
        """当前依赖图；必要时先解析（不物化 checkout）"""
        with self._lock:
            if self.graph is not None:
                return self.graph
            return self._settle(self.root_manifest())

    def show_dependencies(self, fmt: str = "text") -> str:
        graph = self.dependency_graph()
        if fmt == "json":
            return json.dumps(graph.to_dict(), indent=2, ensure_ascii=False)
        return graph.render_tree()

    def managed_dependencies(self) -> list[dict[str, Any]]:
        """已 pin 的依赖及其 checkout 状态"""
        with self._lock:
            pins = self.pins or self.pins_store.load()
            result = []
            for identity in sorted(pins):
                pin = pins[identity]
                result.append({
                    "identity": identity.value,
                    "package": pin.package,
                    "location": pin.location,
                    "effective_location": self.identity_resolver.apply_mirrors(pin.location),
                    "state": pin.describe(),
                    "revision": pin.revision,
                    "path": str(self.checkouts.path_for(identity)),
                    "ready": self.checkouts.is_ready(pin),
                })
            return result
