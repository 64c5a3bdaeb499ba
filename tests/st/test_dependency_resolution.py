"""依赖解析系统测试：完整工作空间流程（内存仓库）"""

from __future__ import annotations

import pytest

from pkgsolve.core.exceptions import IncompatibleRequirementsError
from pkgsolve.core.identity import PackageIdentity
from pkgsolve.services.workspace import Workspace
from pkgsolve.services.workspace.mirrors import MirrorConfig

FOO = "https://example.com/foo.git"
BAR = "https://example.com/bar.git"


@pytest.fixture()
def workspace_for(repos, config):
    def _make(root):
        return Workspace(root, config=config, repositories=repos)

    return _make


def _pinned(ws: Workspace) -> dict[str, str]:
    return {i.value: p.describe() for i, p in ws.pins_store.load().items()}


class TestVersionSelection:
    def test_highest_allowed_version_pinned(self, repos, make_root, workspace_for):
        foo = repos.remote(FOO)
        shas = {v: foo.release("Foo", v, [f'.package(url: "{BAR}", from: "2.0.0")']) for v in ("1.0.0", "1.2.0")}
        foo.release("Foo", "2.0.0")
        repos.remote(BAR).release("Bar", "2.0.0")
        repos.remote(BAR).release("Bar", "2.5.1")

        ws = workspace_for(make_root([f'.package(url: "{FOO}", "1.0.0"..<"2.0.0")']))
        ws.load()
        assert _pinned(ws) == {"bar": "2.5.1", "foo": "1.2.0"}
        assert ws.pins[PackageIdentity("foo")].revision == shas["1.2.0"]
        assert ws.show_dependencies() == f"app\n└── foo<{FOO}@1.2.0>\n    └── bar<{BAR}@2.5.1>"

    def test_pins_survive_new_release_until_update(self, repos, make_root, workspace_for):
        repos.remote(FOO).release("Foo", "1.2.0")
        root = make_root([f'.package(url: "{FOO}", from: "1.0.0")'])
        workspace_for(root).load()
        repos.remote(FOO).release("Foo", "1.3.0")

        ws = workspace_for(root)
        ws.load()
        assert _pinned(ws) == {"foo": "1.2.0"}
        ws.update()
        assert _pinned(ws) == {"foo": "1.3.0"}
        checkout = ws.checkouts.path_for(PackageIdentity("foo"))
        assert ws.checkouts.is_ready(ws.pins[PackageIdentity("foo")])
        assert checkout.is_dir()


class TestMirrors:
    def test_mirror_is_transparent(self, repos, make_root, workspace_for):
        mirror = "https://mirror.local/foo.git"
        repos.remote(mirror).release("Foo", "1.0.0")
        root = make_root([f'.package(url: "{FOO}", from: "1.0.0")'])
        MirrorConfig(root / ".pkgsolve" / "mirrors.yml").set_mirror(FOO, mirror)

        ws = workspace_for(root)
        ws.load()
        pin = ws.pins[PackageIdentity("foo")]
        assert pin.location == FOO
        assert FOO in ws.pins_store.path.read_text(encoding="utf-8")
        assert mirror not in ws.pins_store.path.read_text(encoding="utf-8")
        assert repos.count("clone", FOO) == 0
        assert repos.count("clone", mirror) == 2
        assert ws.managed_dependencies()[0]["effective_location"] == mirror

    @pytest.mark.parametrize("name", ["bar", "Bar", BAR])
    def test_named_update_of_mirrored_package(self, repos, make_root, workspace_for, name):
        mirror = "https://mirror.local/BarMirror.git"
        repos.remote(mirror).release("Bar", "1.0.0")
        root = make_root([f'.package(url: "{BAR}", from: "1.0.0")'])
        MirrorConfig(root / ".pkgsolve" / "mirrors.yml").set_mirror(BAR, mirror)

        ws = workspace_for(root)
        ws.load()
        assert _pinned(ws) == {"barmirror": "1.0.0"}
        repos.remote(mirror).release("Bar", "1.1.0")
        ws.update([name])
        assert _pinned(ws) == {"barmirror": "1.1.0"}
        assert ws.show_dependencies() == f"app\n└── barmirror<{mirror}@1.1.0>"


class TestConflicts:
    def test_branch_against_range(self, repos, make_root, workspace_for):
        repos.remote(FOO).commit({"Package.swift": "// swift-tools-version:5.6\nimport PackageDescription\nlet package = Package(name: \"Foo\")\n"}, branch="main")
        repos.remote(FOO).release("Foo", "1.0.0")
        repos.remote(BAR).release("Bar", "1.0.0", [f'.package(url: "{FOO}", from: "1.0.0")'])
        ws = workspace_for(make_root([
            f'.package(url: "{FOO}", branch: "main")',
            f'.package(url: "{BAR}", from: "1.0.0")',
        ]))
        with pytest.raises(IncompatibleRequirementsError) as exc:
            ws.load()
        message = str(exc.value)
        assert "根包 'App'" in message and "branch main" in message
        assert "bar 1.0.0" in message and "1.0.0..<2.0.0" in message
        assert not ws.pins_store.exists()


class TestIdentity:
    def test_spellings_unify(self, repos, make_root, workspace_for):
        upper = "https://a.example.com/org/Foo.git"
        repos.remote(upper).release("Foo", "1.0.0")
        repos.remote(upper).release("Foo", "1.1.0")
        repos.remote(BAR).release("Bar", "1.0.0", ['.package(url: "https://b.example.com/FOO", "1.0.0"..<"1.1.0")'])
        ws = workspace_for(make_root([
            f'.package(url: "{upper}", from: "1.0.0")',
            f'.package(url: "{BAR}", from: "1.0.0")',
        ]))
        ws.load()
        assert _pinned(ws) == {"bar": "1.0.0", "foo": "1.0.0"}
        assert ws.pins[PackageIdentity("foo")].location == upper


class TestDeterminism:
    def test_pins_byte_identical(self, repos, config, tmp_path, manifest_text):
        for name, location in (("Foo", FOO), ("Bar", BAR)):
            for v in ("1.0.0", "1.1.0"):
                repos.remote(location).release(name, v)
        text = manifest_text("App", [
            f'.package(url: "{BAR}", from: "1.0.0")',
            f'.package(url: "{FOO}", from: "1.0.0")',
        ])
        outputs = []
        for sub in ("one", "two"):
            root = tmp_path / sub / "app"
            root.mkdir(parents=True)
            (root / "Package.swift").write_text(text, encoding="utf-8")
            ws = Workspace(root, config=config, repositories=repos)
            ws.load(checkout=False)
            outputs.append(ws.pins_store.path.read_bytes())
        assert outputs[0] == outputs[1]
        assert outputs[0].index(b'"Bar"') < outputs[0].index(b'"Foo"')
