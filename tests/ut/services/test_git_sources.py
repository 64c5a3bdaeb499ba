"""GitRepositoryManager 单元测试（记录型 CommandExecutor）"""

from __future__ import annotations

from pathlib import Path

import pytest

from pkgsolve.core.exceptions import CheckoutFailedError, ValidationError
from pkgsolve.services.workspace.sources import GitHandle, GitRepositoryManager
from pkgsolve.utils.shell import CommandResult

FULL = "0123456789abcdef0123456789abcdef01234567"


class RecordingExecutor:
    """按命令前缀返回预设结果，记录全部调用"""

    def __init__(self) -> None:
        self.calls: list[tuple[list[str], str | None]] = []
        self.responses: list[tuple[list[str], CommandResult]] = []

    def respond(self, prefix: list[str], stdout: str = "", returncode: int = 0, stderr: str = "") -> None:
        self.responses.append((prefix, CommandResult(returncode, stdout, stderr)))

    def execute(self, args, *, cwd=None, env=None, timeout=None) -> CommandResult:
        self.calls.append((list(args), cwd))
        for prefix, result in self.responses:
            if args[:len(prefix)] == prefix:
                return result
        return CommandResult(0, "", "")


@pytest.fixture()
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture()
def git(executor) -> GitRepositoryManager:
    return GitRepositoryManager(executor, timeout=5)


class TestCommands:
    def test_clone(self, git, executor, tmp_path):
        dest = tmp_path / "cache" / "foo"
        handle = git.clone("https://example.com/foo.git", dest)
        assert handle == GitHandle(dest, "https://example.com/foo.git")
        assert executor.calls == [(["git", "clone", "--quiet", "--", "https://example.com/foo.git", str(dest)], None)]
        assert dest.parent.is_dir()

    def test_fetch_and_tags(self, git, executor, tmp_path):
        executor.respond(["git", "tag"], stdout="1.0.0\nv1.1.0\n\nlatest\n")
        handle = GitHandle(tmp_path, "https://example.com/foo.git")
        git.fetch(handle)
        assert git.tags(handle) == ["1.0.0", "v1.1.0", "latest"]
        assert executor.calls[0] == (["git", "fetch", "--quiet", "--tags", "--force", "origin"], str(tmp_path))

    def test_checkout(self, git, executor, tmp_path):
        git.checkout(GitHandle(tmp_path), FULL)
        assert executor.calls == [(["git", "checkout", "--quiet", "--force", "--detach", FULL], str(tmp_path))]

    def test_open(self, git, executor, tmp_path):
        (tmp_path / ".git").mkdir()
        executor.respond(["git", "config"], stdout="https://example.com/foo.git\n")
        assert git.open(tmp_path) == GitHandle(tmp_path, "https://example.com/foo.git")

    def test_open_not_a_repository(self, git, tmp_path):
        with pytest.raises(CheckoutFailedError, match="不是 git 仓库"):
            git.open(tmp_path)

    def test_failure_raises(self, git, executor, tmp_path):
        executor.respond(["git", "clone"], returncode=128, stderr="fatal: repository not found\n")
        with pytest.raises(CheckoutFailedError, match="repository not found") as exc:
            git.clone("https://example.com/missing.git", tmp_path / "x")
        assert exc.value.retriable


class TestResolveRevision:
    def test_branch_prefers_remote_tracking(self, git, executor, tmp_path):
        executor.respond(["git", "rev-parse", "--verify", "--quiet", "refs/remotes/origin/main^{commit}"], stdout=FULL + "\n")
        assert git.resolve_revision(GitHandle(tmp_path), "main") == FULL
        assert len(executor.calls) == 1

    def test_falls_back_to_plain_ref(self, git, executor, tmp_path):
        executor.respond(["git", "rev-parse", "--verify", "--quiet", "refs/remotes/origin/1.0.0^{commit}"], returncode=1)
        executor.respond(["git", "rev-parse", "--verify", "--quiet", "1.0.0^{commit}"], stdout=FULL + "\n")
        assert git.resolve_revision(GitHandle(tmp_path), "1.0.0") == FULL
        assert len(executor.calls) == 2

    def test_full_hash_checked_directly(self, git, executor, tmp_path):
        executor.respond(["git", "rev-parse"], stdout=FULL + "\n")
        git.resolve_revision(GitHandle(tmp_path), FULL)
        assert executor.calls[0][0][-1] == f"{FULL}^{{commit}}"
        assert len(executor.calls) == 1

    def test_unknown_ref(self, git, executor, tmp_path):
        executor.respond(["git", "rev-parse"], returncode=1)
        with pytest.raises(CheckoutFailedError, match="nope"):
            git.resolve_revision(GitHandle(tmp_path, "https://example.com/foo.git"), "nope")

    @pytest.mark.parametrize("ref", ["", "--upload-pack=evil", "a b", "x;rm"])
    def test_unsafe_ref_rejected(self, git, executor, ref):
        with pytest.raises(ValidationError):
            git.resolve_revision(GitHandle(Path("/tmp")), ref)
        assert executor.calls == []


class TestSetRemote:
    def test_changes_origin(self, git, executor, tmp_path):
        handle = git.set_remote(GitHandle(tmp_path, "https://example.com/foo.git"), "https://mirror.local/foo.git")
        assert handle == GitHandle(tmp_path, "https://mirror.local/foo.git")
        assert executor.calls == [
            (["git", "remote", "set-url", "origin", "https://mirror.local/foo.git"], str(tmp_path)),
        ]

    def test_same_location_is_noop(self, git, executor, tmp_path):
        handle = GitHandle(tmp_path, "https://example.com/foo.git")
        assert git.set_remote(handle, "https://example.com/foo.git") is handle
        assert executor.calls == []
