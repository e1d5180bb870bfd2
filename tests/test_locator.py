"""Tests for PackageLocator — pure filesystem logic on tmp_path."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from cdn_externals.exceptions import ManifestError
from cdn_externals.locator import PackageLocator


@pytest.fixture
def locator():
    return PackageLocator()


class TestLocate:
    def test_finds_package_in_nearest_node_modules(self, locator, install, src, project):
        pkg = install("react", "16.8.0")
        assert locator.locate("react", src) == pkg.resolve()

    def test_nested_install_wins_over_root(self, locator, install, project):
        install("lodash", "3.10.0")
        nested_root = project / "node_modules" / "legacy-lib"
        nested = install("lodash", "4.17.0", root=nested_root)
        (nested_root / "package.json").write_text(json.dumps({"name": "legacy-lib", "version": "1.0.0"}))

        assert locator.locate("lodash", nested_root) == nested.resolve()
        assert locator.locate("lodash", project / "src") == (project / "node_modules" / "lodash").resolve()

    def test_scoped_package(self, locator, install, src):
        pkg = install("@talend/react-components", "2.0.0")
        assert locator.locate("@talend/react-components", src) == pkg.resolve()

    def test_skips_node_modules_directory_itself(self, locator, install, project):
        install("react", "16.8.0")
        # node_modules/node_modules/react must not be probed from inside node_modules
        assert locator.locate("react", project / "node_modules") == (project / "node_modules" / "react").resolve()

    def test_directory_without_package_json_is_ignored(self, locator, project, src):
        (project / "node_modules" / "ghost").mkdir()
        assert locator.locate("ghost", src) is None

    def test_not_installed(self, locator, src):
        assert locator.locate("left-pad", src) is None

    def test_node_path_fallback(self, tmp_path: Path):
        global_root = tmp_path / "global"
        pkg = global_root / "jquery"
        pkg.mkdir(parents=True)
        (pkg / "package.json").write_text(json.dumps({"name": "jquery", "version": "3.4.1"}))
        workdir = tmp_path / "work"
        workdir.mkdir()

        assert PackageLocator().locate("jquery", workdir) is None
        assert PackageLocator(node_path=[global_root]).locate("jquery", workdir) == pkg.resolve()


class TestLoadNearestManifest:
    def test_reads_version_and_dependency_maps(self, locator, install):
        pkg = install(
            "react-dom",
            "16.8.0",
            dependencies={"scheduler": "^0.13.0"},
            peer_dependencies={"react": "^16.0.0"},
        )
        meta = locator.load_nearest_manifest(pkg)
        assert meta.version == "16.8.0"
        assert meta.name == "react-dom"
        assert meta.dependencies == {"scheduler": "^0.13.0"}
        assert meta.peer_dependencies == {"react": "^16.0.0"}
        assert meta.path == str((pkg / "package.json").resolve())

    def test_missing_fields_default_to_empty(self, locator, tmp_path: Path):
        (tmp_path / "package.json").write_text(json.dumps({"name": "bare"}))
        meta = locator.load_nearest_manifest(tmp_path)
        assert meta.version == ""
        assert meta.dependencies == {}
        assert meta.peer_dependencies == {}

    def test_walks_up_to_nearest_manifest(self, locator, install):
        pkg = install("lodash", "4.17.15")
        sub = pkg / "fp"
        sub.mkdir()
        assert locator.load_nearest_manifest(sub).version == "4.17.15"

    def test_invalid_json_raises(self, locator, tmp_path: Path):
        (tmp_path / "package.json").write_text("{oops")
        with pytest.raises(ManifestError):
            locator.load_nearest_manifest(tmp_path)

    def test_non_object_raises(self, locator, tmp_path: Path):
        (tmp_path / "package.json").write_text("[]")
        with pytest.raises(ManifestError, match="not a JSON object"):
            locator.load_nearest_manifest(tmp_path)

    @pytest.mark.asyncio
    async def test_async_wrappers(self, locator, install, src):
        pkg = install("vue", "2.6.10")
        assert await locator.alocate("vue", src) == pkg.resolve()
        meta = await locator.aload_nearest_manifest(pkg)
        assert meta.version == "2.6.10"
