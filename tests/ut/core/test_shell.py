"""shell.py LocalExecutor 单元测试"""

from __future__ import annotations

import os

from pkgsolve.utils.shell import LocalExecutor


class TestLocalExecutor:
    def test_success(self, tmp_path) -> None:
        r = LocalExecutor().execute(["echo", "hello"], cwd=str(tmp_path))
        assert r.success
        assert "hello" in r.stdout

    def test_failure_does_not_raise(self, tmp_path) -> None:
        r = LocalExecutor().execute(["false"], cwd=str(tmp_path))
        assert not r.success

    def test_missing_binary(self, tmp_path) -> None:
        r = LocalExecutor().execute(["pkgsolve-no-such-binary"], cwd=str(tmp_path))
        assert r.returncode == 127

    def test_env_passed(self, tmp_path) -> None:
        env = {**os.environ, "MY_TEST_VAR": "42"}
        r = LocalExecutor().execute(["env"], cwd=str(tmp_path), env=env)
        assert "MY_TEST_VAR=42" in r.stdout

    def test_timeout(self, tmp_path) -> None:
        r = LocalExecutor().execute(["sleep", "5"], cwd=str(tmp_path), timeout=1)
        assert r.returncode == -1
        assert "超时" in r.stderr
