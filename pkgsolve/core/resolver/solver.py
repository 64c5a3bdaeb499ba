"""依赖解析器

算法: 冲突驱动回跳（conflict-directed backjumping）

  1. 根清单的每条依赖是一条约束（层级 ROOT_LEVEL）
  2. 按首次出现顺序取下一个未决定的包，候选按版本从高到低
     （若有偏好版本且仍满足全部约束，则排在最前）
  3. 选定后加载该版本清单，其依赖作为新约束加入（层级为该决策的层级）
  4. 每轮检查全部约束：种类冲突、已决定包被新约束违反、依赖回到根包
  5. 冲突时求最小冲突子集，回跳到其中最近的决策层级，试下一个候选；
     候选用尽则把冲突集连同引入该包的决策层级一并并入，继续向更早的层级回跳；
     没有可回跳的层级即无解

决策栈由不可变的 DecisionFrame 组成，回跳只做截断再压栈。
可用版本的拉取在线程池中预取，决策本身始终单线程。
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass

from pkgsolve.core.exceptions import (
    IdentityCollisionError,
    IncompatibleRequirementsError,
    ResolutionError,
)
from pkgsolve.core.identity import PackageIdentity, PackageReference
from pkgsolve.core.manifest.models import Manifest
from pkgsolve.core.protocols import PackageProvider
from pkgsolve.core.resolver.constraints import (
    BRANCH,
    REVISION,
    ROOT_LEVEL,
    UNVERSIONED,
    BoundVersion,
    Constraint,
)
from pkgsolve.core.resolver.graph import DependencyGraph
from pkgsolve.core.versions import Version

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecisionFrame:
    """一次决策

    conflict_set / reasons 记录本层已失败候选的冲突来源，候选用尽时向上合并。
    """

    identity: PackageIdentity
    ref: PackageReference
    assignment: BoundVersion
    manifest: Manifest
    constraints_added: tuple[Constraint, ...]
    remaining_candidates: tuple[BoundVersion, ...]
    conflict_set: frozenset[int] = frozenset()
    reasons: tuple[str, ...] = ()
    incompatible: bool = False


@dataclass(frozen=True)
class ResolvedBinding:
    ref: PackageReference
    bound: BoundVersion
    manifest: Manifest


@dataclass(frozen=True)
class Resolution:
    """解析结果：每个包的绑定 + 依赖图"""

    bindings: tuple[ResolvedBinding, ...]
    graph: DependencyGraph

    def binding(self, identity: PackageIdentity) -> ResolvedBinding | None:
        for b in self.bindings:
            if b.ref.identity == identity:
                return b
        return None


@dataclass(frozen=True)
class _Conflict:
    culprits: frozenset[int]
    reasons: tuple[str, ...]
    incompatible: bool = False


def _dedupe(items: Sequence[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(items))


class _Session:
    """一次 resolve 调用的全部可变状态"""

    def __init__(
        self,
        provider: PackageProvider,
        pool: ThreadPoolExecutor,
        root_identity: PackageIdentity,
        root_constraints: tuple[Constraint, ...],
        preferred: Mapping[PackageIdentity, BoundVersion],
    ) -> None:
        self.provider = provider
        self.pool = pool
        self.root_identity = root_identity
        self.root_constraints = root_constraints
        self.preferred = preferred
        # 根清单的本地路径依赖覆盖其他来源对同一包的需求
        self.local_overrides = {c.identity for c in root_constraints if c.ref.is_local}
        self._versions: dict[PackageIdentity, Future[list[Version]]] = {}
        self._manifests: dict[tuple[PackageIdentity, BoundVersion], Manifest] = {}

    # ------------------------------------------------------------------
    # 主循环
    # ------------------------------------------------------------------

    def run(self) -> list[DecisionFrame]:
        stack: list[DecisionFrame] = []
        while True:
            constraints = self.active_constraints(stack)
            self.prefetch(constraints)
            conflict = self.check(stack, constraints)
            if conflict is None:
                pending = self.next_undecided(stack, constraints)
                if pending is None:
                    return stack
                outcome = self.decide(pending, len(stack), constraints)
                if isinstance(outcome, DecisionFrame):
                    logger.debug("决策 #%d: %s -> %s", len(stack), outcome.identity, outcome.assignment)
                    stack.append(outcome)
                    continue
                conflict = outcome
            self.backjump(stack, conflict)

    def active_constraints(self, stack: list[DecisionFrame]) -> list[Constraint]:
        result = list(self.root_constraints)
        for frame in stack:
            result.extend(c for c in frame.constraints_added if c.identity not in self.local_overrides)
        return result

    def next_undecided(
        self, stack: list[DecisionFrame], constraints: list[Constraint],
    ) -> PackageReference | None:
        decided = {f.identity for f in stack}
        for c in constraints:
            if c.identity not in decided:
                return c.ref
        return None

    # ------------------------------------------------------------------
    # 约束检查
    # ------------------------------------------------------------------

    def check(self, stack: list[DecisionFrame], constraints: list[Constraint]) -> _Conflict | None:
        decided = {f.identity: (level, f) for level, f in enumerate(stack)}
        groups: dict[PackageIdentity, list[Constraint]] = {}
        for c in constraints:
            if c.identity == self.root_identity:
                return _Conflict(
                    frozenset({c.origin_level}) - {ROOT_LEVEL},
                    (f"{c.describe()}: 依赖回到根包，形成环",),
                )
            groups.setdefault(c.identity, []).append(c)

        for identity, group in groups.items():
            _check_collision(identity, group)
            conflict = _check_kinds(group)
            if conflict is not None:
                return conflict
            if identity not in decided:
                continue
            level, frame = decided[identity]
            for c in group:
                if not frame.assignment.satisfies(c.requirement):
                    return _Conflict(
                        frozenset({level, c.origin_level}) - {ROOT_LEVEL},
                        (f"{identity} 已选定 {frame.assignment}", c.describe()),
                    )
        return None

    # ------------------------------------------------------------------
    # 决策
    # ------------------------------------------------------------------

    def decide(
        self, ref: PackageReference, level: int, constraints: list[Constraint],
    ) -> DecisionFrame | _Conflict:
        group = [c for c in constraints if c.identity == ref.identity]
        kind = group[0].group
        hint = self.preferred.get(ref.identity)
        if kind == UNVERSIONED:
            candidates = [BoundVersion.unversioned()]
        elif kind in (BRANCH, REVISION):
            bound = BoundVersion(kind, ref=group[0].requirement.ref)
            # 分支偏好带 pin 住的 revision，分支名一致时沿用
            if hint is not None and hint.kind == kind and hint.ref == bound.ref:
                bound = hint
            candidates = [bound]
        else:
            versions = self.available(ref)
            candidates = [
                BoundVersion.of_version(v)
                for v in sorted(set(versions), reverse=True)
                if all(c.requirement.allows(v) for c in group)
            ]
            if not candidates:
                return _version_conflict(ref, group, versions)
            if hint is not None and hint in candidates:
                candidates.remove(hint)
                candidates.insert(0, hint)
        return self.push(ref, level, candidates)

    def push(
        self,
        ref: PackageReference,
        level: int,
        candidates: Sequence[BoundVersion],
        conflict_set: frozenset[int] = frozenset(),
        reasons: tuple[str, ...] = (),
        incompatible: bool = False,
    ) -> DecisionFrame:
        bound = candidates[0]
        manifest = self.manifest(ref, bound)
        origin = f"{ref.identity} {bound}"
        added = tuple(
            Constraint(d.reference, d.requirement, origin=origin, origin_level=level)
            for d in manifest.dependencies
        )
        return DecisionFrame(
            identity=ref.identity,
            ref=ref,
            assignment=bound,
            manifest=manifest,
            constraints_added=added,
            remaining_candidates=tuple(candidates[1:]),
            conflict_set=conflict_set,
            reasons=reasons,
            incompatible=incompatible,
        )

    def backjump(self, stack: list[DecisionFrame], conflict: _Conflict) -> None:
        culprits = set(conflict.culprits)
        reasons = conflict.reasons
        incompatible = conflict.incompatible
        while culprits:
            level = max(culprits)
            frame = stack[level]
            del stack[level:]
            culprits = (culprits | frame.conflict_set) - {level}
            reasons = _dedupe(frame.reasons + reasons)
            incompatible = incompatible or frame.incompatible
            if frame.remaining_candidates:
                logger.debug(
                    "回跳到 #%d: %s 放弃 %s，改试 %s",
                    level, frame.identity, frame.assignment, frame.remaining_candidates[0],
                )
                stack.append(self.push(
                    frame.ref, level, frame.remaining_candidates,
                    frozenset(culprits), reasons, incompatible,
                ))
                return
            # 候选用尽：该包之所以需要决策，是因为更早的决策引入了它
            introducers = [
                c for c in self.active_constraints(stack)
                if c.identity == frame.identity and c.origin_level != ROOT_LEVEL
            ]
            culprits |= {c.origin_level for c in introducers}
            reasons = _dedupe(reasons + tuple(c.describe() for c in introducers))

        error_cls = IncompatibleRequirementsError if incompatible else ResolutionError
        raise error_cls("依赖无法满足，以下需求互相冲突:", conflicts=list(reasons))

    # ------------------------------------------------------------------
    # 数据源
    # ------------------------------------------------------------------

    def prefetch(self, constraints: list[Constraint]) -> None:
        for c in constraints:
            if c.group == UNVERSIONED or c.group in (BRANCH, REVISION):
                continue
            if c.identity not in self._versions:
                self._versions[c.identity] = self.pool.submit(self.provider.available_versions, c.ref)

    def available(self, ref: PackageReference) -> list[Version]:
        future = self._versions.get(ref.identity)
        if future is None:
            future = self.pool.submit(self.provider.available_versions, ref)
            self._versions[ref.identity] = future
        return future.result()

    def manifest(self, ref: PackageReference, bound: BoundVersion) -> Manifest:
        key = (ref.identity, bound)
        if key not in self._manifests:
            self._manifests[key] = self.provider.manifest(ref, bound)
        return self._manifests[key]


def _check_collision(identity: PackageIdentity, group: list[Constraint]) -> None:
    first = group[0]
    for c in group[1:]:
        if c.ref.kind != first.ref.kind:
            raise IdentityCollisionError(
                f"'{identity}' 同时指向 {first.ref.location} ({first.ref.kind}) "
                f"和 {c.ref.location} ({c.ref.kind})"
            )


def _check_kinds(group: list[Constraint]) -> _Conflict | None:
    """版本 / 分支 / revision 不能混用；同为分支或 revision 时必须一致"""
    first = group[0]
    for c in group[1:]:
        if c.group != first.group:
            return _Conflict(
                frozenset({first.origin_level, c.origin_level}) - {ROOT_LEVEL},
                (first.describe(), c.describe()),
                incompatible=True,
            )
        if c.group in (BRANCH, REVISION) and c.requirement.ref != first.requirement.ref:
            return _Conflict(
                frozenset({first.origin_level, c.origin_level}) - {ROOT_LEVEL},
                (first.describe(), c.describe()),
            )
    return None


def _version_conflict(ref: PackageReference, group: list[Constraint], versions: list[Version]) -> _Conflict:
    """贪心删除求最小的不可满足约束子集"""
    if not versions:
        return _Conflict(
            frozenset(c.origin_level for c in group) - {ROOT_LEVEL},
            (f"{ref.location} 没有任何可用的版本 tag",) + tuple(c.describe() for c in group),
        )

    def unsatisfiable(subset: list[Constraint]) -> bool:
        return not any(all(c.requirement.allows(v) for c in subset) for v in versions)

    minimal = list(group)
    for c in list(minimal):
        trial = [x for x in minimal if x is not c]
        if trial and unsatisfiable(trial):
            minimal = trial
    return _Conflict(
        frozenset(c.origin_level for c in minimal) - {ROOT_LEVEL},
        tuple(c.describe() for c in minimal),
    )


class DependencyResolver:
    """依赖解析器

    provider 提供版本列表与清单；preferred 为偏好绑定（通常来自 pins），
    仅在仍满足全部约束时优先尝试，从不作为硬约束。
    """

    def __init__(self, provider: PackageProvider, max_workers: int = 4) -> None:
        self.provider = provider
        self.max_workers = max_workers

    def resolve(
        self,
        root: Manifest,
        preferred: Mapping[PackageIdentity, BoundVersion] | None = None,
    ) -> Resolution:
        root_identity = root.identity or PackageIdentity.plain(root.name)
        origin = f"根包 '{root.name}'"
        root_constraints = tuple(Constraint(d.reference, d.requirement, origin=origin) for d in root.dependencies)

        logger.info("开始解析 %s: %d 个直接依赖", root_identity, len(root_constraints))
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="pkgsolve-fetch") as pool:
            session = _Session(self.provider, pool, root_identity, root_constraints, preferred or {})
            frames = session.run()

        graph = DependencyGraph(root_identity)
        for c in root_constraints:
            graph.add_node(c.ref)
        for frame in frames:
            graph.add_node(frame.ref, label=str(frame.assignment))
        for c in root_constraints:
            graph.add_edge(root_identity, c.identity, c.requirement)
        for frame in frames:
            for c in frame.constraints_added:
                graph.add_edge(frame.identity, c.identity, c.requirement)

        bindings = tuple(ResolvedBinding(f.ref, f.assignment, f.manifest) for f in frames)
        logger.info("解析完成: %d 个包", len(bindings))
        return Resolution(bindings=bindings, graph=graph)
