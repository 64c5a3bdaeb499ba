"""Git 仓库适配器

职责：
- clone / fetch / tags / checkout / rev-parse
- 所有命令经 CommandExecutor 执行，失败统一抛 CheckoutFailedError
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from pkgsolve.core.exceptions import CheckoutFailedError, ValidationError
from pkgsolve.utils.shell import CommandExecutor, CommandResult, LocalExecutor

logger = logging.getLogger(__name__)

_SAFE_REF_RE = re.compile(r"^[a-zA-Z0-9_./@+\-]+$")
_FULL_HASH_RE = re.compile(r"^[0-9a-f]{40}$")


@dataclass(frozen=True)
class GitHandle:
    """本地 git 仓库句柄"""

    path: Path
    location: str = ""


def _check_ref(ref: str) -> None:
    if not ref or ref.startswith("-") or not _SAFE_REF_RE.match(ref):
        raise ValidationError(f"ref 包含非法字符: {ref!r}")


class GitRepositoryManager:
    """基于 git 命令行的版本控制能力"""

    def __init__(self, executor: CommandExecutor | None = None, timeout: int | None = 600) -> None:
        self.executor = executor or LocalExecutor()
        self.timeout = timeout

    def _git(self, args: list[str], *, cwd: Path | None = None, what: str = "") -> CommandResult:
        result = self.executor.execute(
            ["git", *args], cwd=str(cwd) if cwd else None, timeout=self.timeout,
        )
        if not result.success:
            raise CheckoutFailedError(
                f"git {what or args[0]} 失败 (rc={result.returncode}): {result.stderr.strip()[:300]}"
            )
        return result

    def clone(self, location: str, dest: Path) -> GitHandle:
        dest.parent.mkdir(parents=True, exist_ok=True)
        logger.info("克隆 %s -> %s", location, dest)
        self._git(["clone", "--quiet", "--", location, str(dest)], what="clone")
        return GitHandle(dest, location)

    def open(self, dest: Path) -> GitHandle:
        if not (dest / ".git").exists():
            raise CheckoutFailedError(f"不是 git 仓库: {dest}")
        r = self.executor.execute(
            ["git", "config", "--get", "remote.origin.url"], cwd=str(dest), timeout=self.timeout,
        )
        return GitHandle(dest, r.stdout.strip() if r.success else "")

    def set_remote(self, handle: GitHandle, location: str) -> GitHandle:
        if handle.location == location:
            return handle
        logger.info("远端地址变更: %s -> %s (%s)", handle.location or "?", location, handle.path)
        self._git(["remote", "set-url", "origin", location], cwd=handle.path, what="remote set-url")
        return GitHandle(handle.path, location)

    def fetch(self, handle: GitHandle) -> None:
        logger.info("拉取 %s", handle.location or handle.path)
        self._git(["fetch", "--quiet", "--tags", "--force", "origin"], cwd=handle.path, what="fetch")

    def tags(self, handle: GitHandle) -> list[str]:
        r = self._git(["tag", "--list"], cwd=handle.path, what="tag")
        return [line.strip() for line in r.stdout.splitlines() if line.strip()]

    def checkout(self, handle: GitHandle, revision: str) -> None:
        _check_ref(revision)
        self._git(["checkout", "--quiet", "--force", "--detach", revision], cwd=handle.path, what="checkout")
        logger.debug("检出 %s @ %s", handle.path, revision[:12])

    def resolve_revision(self, handle: GitHandle, ref: str) -> str:
        """tag / 分支 / 短 hash -> 完整 commit hash；分支优先取远端跟踪分支"""
        _check_ref(ref)
        candidates = [ref] if _FULL_HASH_RE.match(ref) else [f"refs/remotes/origin/{ref}", ref]
        for candidate in candidates:
            r = self.executor.execute(
                ["git", "rev-parse", "--verify", "--quiet", f"{candidate}^{{commit}}"],
                cwd=str(handle.path), timeout=self.timeout,
            )
            if r.success and r.stdout.strip():
                return r.stdout.strip()
        raise CheckoutFailedError(f"无法解析 {handle.location or handle.path} 中的引用 '{ref}'")
