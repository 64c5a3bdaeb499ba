"""命令行端到端测试（click.testing + 内存仓库）"""

from __future__ import annotations

import pytest
from click.testing import CliRunner

from pkgsolve import __version__
from pkgsolve.cli import main
from pkgsolve.utils.logger import reset_logging

FOO = "https://example.com/foo.git"
FOO_DEP = f'.package(url: "{FOO}", from: "1.0.0")'


@pytest.fixture()
def runner(repos, monkeypatch):
    monkeypatch.setattr(
        "pkgsolve.services.workspace.workspace.GitRepositoryManager", lambda **kwargs: repos,
    )
    yield CliRunner(env={"PKGSOLVE_LOG_LEVEL": "WARNING"})
    reset_logging()


def _run(runner, root, *args):
    return runner.invoke(main, ["--package-path", str(root), *args])


class TestResolveCommands:
    def test_resolve(self, runner, repos, make_root):
        repos.remote(FOO).release("Foo", "1.0.0")
        root = make_root([FOO_DEP])
        result = _run(runner, root, "resolve")
        assert result.exit_code == 0, result.output
        assert "已解析 1 个依赖 (ready)" in result.output
        assert (root / "Package.resolved").is_file()

    def test_resolve_no_checkout(self, runner, repos, make_root):
        repos.remote(FOO).release("Foo", "1.0.0")
        root = make_root([FOO_DEP])
        result = _run(runner, root, "resolve", "--no-checkout")
        assert result.exit_code == 0, result.output
        assert "(resolved)" in result.output
        assert not (root / ".build" / "checkouts" / "foo").exists()

    def test_update_reports_changes(self, runner, repos, make_root):
        repos.remote(FOO).release("Foo", "1.0.0")
        root = make_root([FOO_DEP])
        _run(runner, root, "resolve")
        repos.remote(FOO).release("Foo", "1.1.0")
        result = _run(runner, root, "update")
        assert result.exit_code == 0, result.output
        assert "1.0.0 -> 1.1.0" in result.output
        assert "更新完成: 1 个依赖有变化" in result.output

    def test_show_dependencies(self, runner, repos, make_root):
        repos.remote(FOO).release("Foo", "1.0.0")
        root = make_root([FOO_DEP])
        result = _run(runner, root, "show-dependencies")
        assert result.exit_code == 0, result.output
        assert f"└── foo<{FOO}@1.0.0>" in result.output
        result = _run(runner, root, "show-dependencies", "--format", "json")
        assert '"root": "app"' in result.output

    def test_list_managed(self, runner, repos, make_root):
        root = make_root([FOO_DEP])
        assert "没有已管理的依赖" in _run(runner, root, "list-managed").output
        repos.remote(FOO).release("Foo", "1.0.0")
        _run(runner, root, "resolve")
        result = _run(runner, root, "list-managed")
        assert "[✓] foo" in result.output

    def test_domain_error_has_code(self, runner, tmp_path):
        result = _run(runner, tmp_path, "resolve")
        assert result.exit_code == 1
        assert "[MANIFEST_NOT_FOUND]" in result.output

    def test_resolution_failure(self, runner, repos, make_root):
        root = make_root([FOO_DEP])
        repos.remote(FOO).release("Foo", "2.0.0")
        result = _run(runner, root, "resolve")
        assert result.exit_code == 1
        assert "[RESOLUTION_FAILED]" in result.output


class TestManifestCommands:
    def test_dump_manifest(self, runner, make_root):
        root = make_root([FOO_DEP], name="App")
        result = _run(runner, root, "dump-manifest")
        assert result.exit_code == 0, result.output
        assert result.output.startswith("// swift-tools-version: 5.6\nimport PackageDescription\n")
        assert f'.package(url: "{FOO}", from: "1.0.0")' in result.output


class TestConfigCommands:
    def test_mirror_lifecycle(self, runner, tmp_path):
        result = _run(runner, tmp_path, "config", "set-mirror", "--original", FOO, "--mirror", "https://m.local/foo.git")
        assert result.exit_code == 0, result.output
        assert (tmp_path / ".pkgsolve" / "mirrors.yml").is_file()
        assert _run(runner, tmp_path, "config", "get-mirror", FOO).output.strip() == "https://m.local/foo.git"

        assert _run(runner, tmp_path, "config", "unset-mirror", "https://m.local/foo.git").exit_code == 0
        result = _run(runner, tmp_path, "config", "get-mirror", FOO)
        assert result.exit_code == 1
        assert "未配置镜像" in result.output

    def test_unset_unknown(self, runner, tmp_path):
        result = _run(runner, tmp_path, "config", "unset-mirror", FOO)
        assert result.exit_code == 1
        assert "[CONFIG_ERROR]" in result.output


def test_version(runner):
    result = runner.invoke(main, ["--version"])
    assert __version__ in result.output
