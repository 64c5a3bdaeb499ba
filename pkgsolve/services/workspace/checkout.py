"""Checkout 物化

职责：
- 按 pins 把每个远程包检出到 <build>/checkouts/<identity>
  （首次 clone，之后原地 fetch + checkout；均从镜像地址拉取，
  镜像在 clone 之后才配置时先改写已有 clone 的远端地址）
- 状态日志 workspace-state.json：动手前记 pending，完成后记 ready，
  中途被打断的 checkout 下次会被识别并重做
- 不同标识并行，同一标识互斥（重试会等待进行中的 checkout）
- 失败不在这里重试，汇总后抛 CheckoutFailedError
"""

from __future__ import annotations

import json
import logging
import shutil
import threading
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any

from pkgsolve.core.exceptions import CheckoutFailedError, PkgSolveError
from pkgsolve.core.identity import IdentityResolver, PackageIdentity
from pkgsolve.core.protocols import RepositoryManager
from pkgsolve.services.workspace.pins import ResolvedPin
from pkgsolve.utils.yaml_io import atomic_write

logger = logging.getLogger(__name__)

PENDING = "pending"
READY = "ready"

STATE_FORMAT_VERSION = 1


class CheckoutJournal:
    """checkout 状态日志（JSON，原子写入）"""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._entries: dict[str, dict[str, Any]] = self._read()

    def _read(self) -> dict[str, dict[str, Any]]:
        if not self.path.is_file():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            # 损坏时视为全部未检出
            logger.warning("checkout 状态文件损坏，将全部重新检出: %s (%s)", self.path, e)
            return {}
        checkouts = data.get("checkouts") if isinstance(data, dict) else None
        return dict(checkouts) if isinstance(checkouts, dict) else {}

    def _flush(self) -> None:
        data = {"version": STATE_FORMAT_VERSION, "checkouts": dict(sorted(self._entries.items()))}
        atomic_write(self.path, json.dumps(data, indent=2, ensure_ascii=False) + "\n")

    def get(self, identity: PackageIdentity) -> dict[str, Any] | None:
        with self._lock:
            entry = self._entries.get(identity.value)
            return dict(entry) if entry else None

    def mark(self, identity: PackageIdentity, state: str, **info: Any) -> None:
        with self._lock:
            self._entries[identity.value] = {"state": state, **info}
            self._flush()

    def remove(self, identity: PackageIdentity) -> None:
        with self._lock:
            if self._entries.pop(identity.value, None) is not None:
                self._flush()

    def identities(self) -> list[PackageIdentity]:
        with self._lock:
            return [PackageIdentity(k) for k in self._entries]


class CheckoutManager:
    """按 pins 物化 checkout"""

    def __init__(
        self,
        repositories: RepositoryManager,
        checkouts_dir: Path,
        journal: CheckoutJournal,
        identity_resolver: IdentityResolver | None = None,
        max_workers: int = 4,
    ) -> None:
        self.repositories = repositories
        self.checkouts_dir = Path(checkouts_dir)
        self.journal = journal
        self.identity_resolver = identity_resolver or IdentityResolver()
        self.max_workers = max_workers
        self._guard = threading.Lock()
        self._locks: dict[PackageIdentity, threading.Lock] = {}

    def _lock_for(self, identity: PackageIdentity) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(identity, threading.Lock())

    def path_for(self, identity: PackageIdentity) -> Path:
        return self.checkouts_dir / identity.value

    def is_ready(self, pin: ResolvedPin) -> bool:
        entry = self.journal.get(pin.identity)
        return (
            entry is not None
            and entry.get("state") == READY
            and entry.get("revision") == pin.revision
            and self.path_for(pin.identity).is_dir()
        )

    def checkout(self, pin: ResolvedPin) -> Path:
        """检出单个包；已就绪则直接返回"""
        with self._lock_for(pin.identity):
            dest = self.path_for(pin.identity)
            if self.is_ready(pin):
                logger.debug("checkout 已就绪: %s @ %s", pin.identity, pin.describe())
                return dest

            effective = self.identity_resolver.apply_mirrors(pin.location)
            previous = self.journal.get(pin.identity)
            interrupted = previous is not None and previous.get("state") == PENDING
            try:
                self.journal.mark(pin.identity, PENDING, location=pin.location, revision=pin.revision)
                if interrupted and dest.exists():
                    logger.warning("检测到中断的 checkout，重新克隆: %s", pin.identity)
                    shutil.rmtree(dest)
                if (dest / ".git").exists():
                    handle = self.repositories.set_remote(self.repositories.open(dest), effective)
                    self.repositories.fetch(handle)
                else:
                    if dest.exists():
                        # 没有 .git 的残留目录
                        shutil.rmtree(dest)
                    handle = self.repositories.clone(effective, dest)
                self.repositories.checkout(handle, pin.revision)
                self.journal.mark(pin.identity, READY, location=pin.location, revision=pin.revision)
            except OSError as e:
                raise CheckoutFailedError(f"{pin.identity} 检出失败: {e}", identity=pin.identity.value) from e
            except CheckoutFailedError as e:
                if not e.identity:
                    e.identity = pin.identity.value
                raise

            logger.info("checkout 就绪: %s @ %s", pin.identity, pin.describe())
            return dest

    def materialize(self, pins: Sequence[ResolvedPin]) -> dict[PackageIdentity, Path]:
        """并行检出全部 pins，任一失败则汇总抛出"""
        paths: dict[PackageIdentity, Path] = {}
        failures: list[PkgSolveError] = []
        if not pins:
            return paths
        workers = max(1, min(self.max_workers, len(pins)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="pkgsolve-checkout") as pool:
            futures = {pool.submit(self.checkout, pin): pin for pin in pins}
            for future in as_completed(futures):
                pin = futures[future]
                try:
                    paths[pin.identity] = future.result()
                except PkgSolveError as e:
                    logger.error("checkout 失败: %s: %s", pin.identity, e)
                    failures.append(e)

        if failures:
            identities = sorted(getattr(e, "identity", "") or "?" for e in failures)
            raise CheckoutFailedError(
                f"{len(failures)} 个包检出失败: {', '.join(identities)}\n"
                + "\n".join(f"  - {e}" for e in failures),
                identity=identities[0],
            )
        return dict(sorted(paths.items()))

    def prune(self, keep: Iterable[PackageIdentity]) -> list[PackageIdentity]:
        """删除不再被 pin 的 checkout"""
        keep_set = set(keep)
        removed = []
        for identity in self.journal.identities():
            if identity in keep_set:
                continue
            with self._lock_for(identity):
                shutil.rmtree(self.path_for(identity), ignore_errors=True)
                self.journal.remove(identity)
            removed.append(identity)
            logger.info("已移除不再需要的 checkout: %s", identity)
        return removed
