"""测试共享 fixture：内存版远程仓库 + 清单文本构造

整体架构:

  FakeRemote               FakeRepositoryManager            Workspace / Provider
  ┌────────────┐      ┌─────────────────────────┐      ┌──────────────────────┐
  │ commits    │─────>│ clone  -> 写 .git/origin │<─────│ RepositoryManager    │
  │ tags       │      │ checkout -> 写入文件快照 │      │ 协议注入，无真实 git │
  │ branches   │      │ tags / resolve_revision  │      └──────────────────────┘
  └────────────┘      └─────────────────────────┘

远程仓库的每个 commit 是 {文件名: 内容} 快照；checkout 时整体写入目标目录。
"""

from __future__ import annotations

import hashlib
import shutil
from pathlib import Path

import pytest

from pkgsolve.core.config import Config
from pkgsolve.core.exceptions import CheckoutFailedError
from pkgsolve.services.workspace.sources import GitHandle


def package_swift(
    name: str,
    dependencies: list[str] | None = None,
    tools: str = "5.6",
) -> str:
    """构造最小清单文本，dependencies 为 .package(...) 片段"""
    deps = ",\n".join(f"        {d}" for d in dependencies or [])
    lines = [
        f"// swift-tools-version:{tools}",
        "import PackageDescription",
        "",
        "let package = Package(",
        f'    name: "{name}",',
    ]
    if deps:
        lines.append(f"    dependencies: [\n{deps}\n    ],")
    lines.append(f'    targets: [.target(name: "{name}")]')
    lines.append(")")
    return "\n".join(lines) + "\n"


class FakeRemote:
    """一个远程仓库"""

    def __init__(self, location: str) -> None:
        self.location = location
        self.commits: dict[str, dict[str, str]] = {}
        self.tags: dict[str, str] = {}
        self.branches: dict[str, str] = {}

    def commit(
        self, files: dict[str, str], *, tag: str | None = None, branch: str | None = None,
    ) -> str:
        seed = f"{self.location}:{len(self.commits)}:{sorted(files.items())}"
        sha = hashlib.sha1(seed.encode()).hexdigest()
        self.commits[sha] = dict(files)
        if tag:
            self.tags[tag] = sha
        if branch:
            self.branches[branch] = sha
        return sha

    def release(self, name: str, version: str, dependencies: list[str] | None = None) -> str:
        """提交一个带清单的版本并打 tag"""
        return self.commit({"Package.swift": package_swift(name, dependencies)}, tag=version)


class FakeRepositoryManager:
    """RepositoryManager 的内存实现，记录全部调用"""

    def __init__(self) -> None:
        self.remotes: dict[str, FakeRemote] = {}
        self.calls: list[tuple[str, str]] = []
        self.failing: set[str] = set()

    def remote(self, location: str) -> FakeRemote:
        return self.remotes.setdefault(location, FakeRemote(location))

    def _remote_of(self, handle: GitHandle) -> FakeRemote:
        if handle.location in self.failing or handle.location not in self.remotes:
            raise CheckoutFailedError(f"无法访问远程仓库: {handle.location}")
        return self.remotes[handle.location]

    def clone(self, location: str, dest: Path) -> GitHandle:
        self.calls.append(("clone", location))
        handle = GitHandle(dest, location)
        self._remote_of(handle)
        (dest / ".git").mkdir(parents=True, exist_ok=True)
        (dest / ".git" / "origin").write_text(location, encoding="utf-8")
        return handle

    def open(self, dest: Path) -> GitHandle:
        location = (dest / ".git" / "origin").read_text(encoding="utf-8")
        self.calls.append(("open", location))
        return GitHandle(dest, location)

    def set_remote(self, handle: GitHandle, location: str) -> GitHandle:
        if handle.location == location:
            return handle
        self.calls.append(("set_remote", location))
        (handle.path / ".git" / "origin").write_text(location, encoding="utf-8")
        return GitHandle(handle.path, location)

    def fetch(self, handle: GitHandle) -> None:
        self.calls.append(("fetch", handle.location))
        self._remote_of(handle)

    def tags(self, handle: GitHandle) -> list[str]:
        return sorted(self._remote_of(handle).tags)

    def checkout(self, handle: GitHandle, revision: str) -> None:
        self.calls.append(("checkout", f"{handle.location}@{revision}"))
        remote = self._remote_of(handle)
        if revision not in remote.commits:
            raise CheckoutFailedError(f"revision 不存在: {revision}")
        for child in handle.path.iterdir():
            if child.name == ".git":
                continue
            if child.is_dir():
                shutil.rmtree(child)
            else:
                child.unlink()
        for name, content in remote.commits[revision].items():
            (handle.path / name).write_text(content, encoding="utf-8")

    def resolve_revision(self, handle: GitHandle, ref: str) -> str:
        remote = self._remote_of(handle)
        if ref in remote.tags:
            return remote.tags[ref]
        if ref in remote.branches:
            return remote.branches[ref]
        matches = [sha for sha in remote.commits if sha.startswith(ref)]
        if len(matches) == 1:
            return matches[0]
        raise CheckoutFailedError(f"无法解析引用: {ref}")

    def count(self, op: str, location: str | None = None) -> int:
        return sum(1 for o, loc in self.calls if o == op and (location is None or loc.startswith(location)))


@pytest.fixture()
def repos() -> FakeRepositoryManager:
    return FakeRepositoryManager()


@pytest.fixture()
def config() -> Config:
    return Config(max_workers=2)


@pytest.fixture()
def make_root(tmp_path):
    """在 tmp_path/app 下写根清单，返回根目录"""

    def _make(dependencies: list[str] | None = None, name: str = "App", text: str | None = None) -> Path:
        root = tmp_path / "app"
        root.mkdir(exist_ok=True)
        (root / "Package.swift").write_text(text or package_swift(name, dependencies), encoding="utf-8")
        return root

    return _make


@pytest.fixture()
def manifest_text():
    """package_swift 构造函数"""
    return package_swift
