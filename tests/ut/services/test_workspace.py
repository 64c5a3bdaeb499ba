"""Workspace 单元测试（内存仓库）"""

from __future__ import annotations

import json

import pytest

from pkgsolve.core.exceptions import ResolutionError
from pkgsolve.core.identity import PackageIdentity
from pkgsolve.services.workspace import Workspace, WorkspaceState

FOO = "https://example.com/foo.git"
BAR = "https://example.com/bar.git"
FOO_DEP = f'.package(url: "{FOO}", from: "1.0.0")'
BAR_DEP = f'.package(url: "{BAR}", from: "1.0.0")'


def _versions(ws: Workspace) -> dict[str, str]:
    return {i.value: p.describe() for i, p in ws.pins_store.load().items()}


@pytest.fixture()
def workspace_for(repos, config):
    def _make(root):
        return Workspace(root, config=config, repositories=repos)

    return _make


class TestLoad:
    def test_resolves_and_checks_out(self, repos, make_root, workspace_for):
        for v in ("1.0.0", "1.2.0", "2.0.0"):
            repos.remote(FOO).release("Foo", v)
        ws = workspace_for(make_root([FOO_DEP]))
        paths = ws.load()
        assert ws.state == WorkspaceState.READY
        assert _versions(ws) == {"foo": "1.2.0"}
        pin = ws.pins[PackageIdentity("foo")]
        assert pin.revision == repos.remote(FOO).tags["1.2.0"]
        assert (paths[PackageIdentity("foo")] / "Package.swift").is_file()
        assert ws.checkouts.is_ready(pin)

    def test_without_checkout(self, repos, make_root, workspace_for):
        repos.remote(FOO).release("Foo", "1.0.0")
        ws = workspace_for(make_root([FOO_DEP]))
        assert ws.load(checkout=False) == {}
        assert ws.state == WorkspaceState.RESOLVED
        assert not ws.checkouts.path_for(PackageIdentity("foo")).exists()

    def test_reuses_valid_pins(self, repos, make_root, workspace_for):
        repos.remote(FOO).release("Foo", "1.0.0")
        root = make_root([FOO_DEP])
        workspace_for(root).load()
        repos.remote(FOO).release("Foo", "1.1.0")

        ws = workspace_for(root)
        ws.load()
        assert _versions(ws) == {"foo": "1.0.0"}
        assert ws.resolution is None

    def test_stale_pins_re_resolved(self, repos, make_root, workspace_for):
        for v in ("1.2.0", "2.0.0"):
            repos.remote(FOO).release("Foo", v)
        workspace_for(make_root([FOO_DEP])).load()
        root = make_root([f'.package(url: "{FOO}", from: "2.0.0")'])

        ws = workspace_for(root)
        ws.load()
        assert _versions(ws) == {"foo": "2.0.0"}
        assert ws.resolution is not None

    def test_extra_pins_re_resolved(self, repos, make_root, workspace_for):
        repos.remote(FOO).release("Foo", "1.0.0")
        repos.remote(BAR).release("Bar", "1.0.0")
        workspace_for(make_root([FOO_DEP, BAR_DEP])).load()

        ws = workspace_for(make_root([FOO_DEP]))
        ws.load()
        assert _versions(ws) == {"foo": "1.0.0"}
        assert not ws.checkouts.path_for(PackageIdentity("bar")).exists()

    def test_local_dependency_not_pinned(self, make_root, workspace_for, tmp_path, manifest_text):
        util = tmp_path / "Util"
        util.mkdir()
        (util / "Package.swift").write_text(manifest_text("Util"), encoding="utf-8")
        ws = workspace_for(make_root(['.package(path: "../Util")']))
        ws.load()
        assert ws.pins == {}
        assert ws.graph.label(PackageIdentity("util")) == "local"
        assert json.loads(ws.pins_store.path.read_text(encoding="utf-8"))["object"]["pins"] == []

    def test_branch_pin_kept_when_re_resolving(self, repos, make_root, workspace_for, manifest_text):
        first = repos.remote(FOO).commit({"Package.swift": manifest_text("Foo")}, branch="main")
        repos.remote(BAR).release("Bar", "1.0.0")
        branch_dep = f'.package(url: "{FOO}", branch: "main")'
        workspace_for(make_root([branch_dep])).load()
        moved = repos.remote(FOO).commit({"Package.swift": manifest_text("Foo")}, branch="main")

        ws = workspace_for(make_root([branch_dep, BAR_DEP]))
        ws.load()
        assert ws.resolution is not None
        foo = ws.pins[PackageIdentity("foo")]
        assert (foo.branch, foo.revision) == ("main", first)
        assert ws.checkouts.is_ready(foo)

        ws.update(["bar"])
        assert ws.pins[PackageIdentity("foo")].revision == first
        ws.update()
        assert ws.pins[PackageIdentity("foo")].revision == moved


class TestUpdate:
    def test_update_moves_to_newest(self, repos, make_root, workspace_for):
        repos.remote(FOO).release("Foo", "1.0.0")
        ws = workspace_for(make_root([FOO_DEP]))
        ws.load()
        repos.remote(FOO).release("Foo", "1.3.0")
        ws.update()
        assert _versions(ws) == {"foo": "1.3.0"}
        assert ws.state == WorkspaceState.READY

    def test_partial_update(self, repos, make_root, workspace_for):
        repos.remote(FOO).release("Foo", "1.0.0")
        repos.remote(BAR).release("Bar", "1.0.0")
        ws = workspace_for(make_root([FOO_DEP, BAR_DEP]))
        ws.load()
        repos.remote(FOO).release("Foo", "1.1.0")
        repos.remote(BAR).release("Bar", "1.1.0")
        ws.update(["Bar"])
        assert _versions(ws) == {"bar": "1.1.0", "foo": "1.0.0"}

    def test_failure_keeps_pins(self, repos, make_root, workspace_for):
        repos.remote(FOO).release("Foo", "1.0.0")
        root = make_root([FOO_DEP])
        ws = workspace_for(root)
        ws.load()
        before = ws.pins_store.path.read_bytes()

        make_root([f'.package(url: "{FOO}", from: "5.0.0")'])
        with pytest.raises(ResolutionError):
            ws.update()
        assert ws.state == WorkspaceState.UNRESOLVED
        assert ws.pins_store.path.read_bytes() == before


class TestReporting:
    def test_show_dependencies(self, repos, make_root, workspace_for):
        repos.remote(FOO).release("Foo", "1.0.0", [BAR_DEP])
        repos.remote(BAR).release("Bar", "1.0.0")
        ws = workspace_for(make_root([FOO_DEP]))
        assert ws.show_dependencies() == f"app\n└── foo<{FOO}@1.0.0>\n    └── bar<{BAR}@1.0.0>"
        data = json.loads(ws.show_dependencies("json"))
        assert [n["identity"] for n in data["nodes"]] == ["app", "foo", "bar"]
        assert ws.state == WorkspaceState.RESOLVED

    def test_managed_dependencies(self, repos, make_root, workspace_for):
        repos.remote(FOO).release("Foo", "1.0.0")
        ws = workspace_for(make_root([FOO_DEP]))
        ws.load()
        (entry,) = ws.managed_dependencies()
        assert entry["identity"] == "foo"
        assert entry["location"] == FOO
        assert entry["state"] == "1.0.0"
        assert entry["ready"] is True

    def test_root_manifest(self, make_root, workspace_for):
        ws = workspace_for(make_root([], name="App"))
        m = ws.root_manifest()
        assert m.name == "App"
        assert m.identity == PackageIdentity("app")
        assert ws.load() == {}
        assert ws.pins_store.load() == {}
