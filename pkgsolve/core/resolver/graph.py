"""依赖图

节点为包标识，边携带产生它的需求。由解析器根据最终决策构建，只读展示用。
版本选择意义上允许成环（收敛到同一版本即可），遍历时对已访问节点做截断。
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from pkgsolve.core.identity import PackageIdentity, PackageReference
from pkgsolve.core.versions import Requirement


@dataclass(frozen=True)
class DependencyEdge:
    source: PackageIdentity
    target: PackageIdentity
    requirement: Requirement


class DependencyGraph:
    """有向依赖图（节点按加入顺序保存）"""

    def __init__(self, root: PackageIdentity) -> None:
        self.root = root
        self._nodes: dict[PackageIdentity, PackageReference | None] = {root: None}
        self._edges: dict[PackageIdentity, list[DependencyEdge]] = {root: []}
        self._labels: dict[PackageIdentity, str] = {}

    def add_node(self, ref: PackageReference, label: str = "") -> None:
        if self._nodes.get(ref.identity) is None:
            self._nodes[ref.identity] = ref
        self._edges.setdefault(ref.identity, [])
        if label:
            self._labels[ref.identity] = label

    def add_edge(self, source: PackageIdentity, target: PackageIdentity, requirement: Requirement) -> None:
        edges = self._edges.setdefault(source, [])
        if any(e.target == target for e in edges):
            return
        edges.append(DependencyEdge(source, target, requirement))

    @property
    def nodes(self) -> list[PackageIdentity]:
        return list(self._nodes)

    @property
    def edges(self) -> list[DependencyEdge]:
        return [e for edges in self._edges.values() for e in edges]

    def reference(self, identity: PackageIdentity) -> PackageReference | None:
        return self._nodes.get(identity)

    def label(self, identity: PackageIdentity) -> str:
        return self._labels.get(identity, "")

    def successors(self, identity: PackageIdentity) -> list[PackageIdentity]:
        return [e.target for e in self._edges.get(identity, [])]

    def __contains__(self, identity: object) -> bool:
        return identity in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def walk(self) -> Iterator[tuple[int, PackageIdentity, bool]]:
        """深度优先遍历，产出 (深度, 标识, 是否已展开过)"""
        seen: set[PackageIdentity] = set()

        def visit(identity: PackageIdentity, depth: int) -> Iterator[tuple[int, PackageIdentity, bool]]:
            repeated = identity in seen
            yield depth, identity, repeated
            if repeated:
                return
            seen.add(identity)
            for child in self.successors(identity):
                yield from visit(child, depth + 1)

        yield from visit(self.root, 0)

    def describe(self, identity: PackageIdentity) -> str:
        """identity<生效位置@状态>，根节点只有标识"""
        ref = self._nodes.get(identity)
        if ref is None:
            return str(identity)
        label = self.label(identity)
        where = f"{ref.effective_location}@{label}" if label else ref.effective_location
        return f"{identity}<{where}>"

    def render_tree(self) -> str:
        """文本树，重复出现的子树只展开一次"""
        lines = []
        for depth, identity, repeated in self.walk():
            text = self.describe(identity)
            if depth == 0:
                lines.append(text)
                continue
            suffix = " (*)" if repeated and self.successors(identity) else ""
            lines.append(f"{'    ' * (depth - 1)}└── {text}{suffix}")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "root": str(self.root),
            "nodes": [
                {
                    "identity": str(identity),
                    "location": ref.location if ref else "",
                    "state": self.label(identity),
                    "dependencies": [
                        {"identity": str(e.target), "requirement": str(e.requirement)}
                        for e in self._edges.get(identity, [])
                    ],
                }
                for identity, ref in self._nodes.items()
            ],
        }
