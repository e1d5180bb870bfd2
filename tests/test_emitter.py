"""Tests for end-of-build outputs."""

from __future__ import annotations

import json

import pytest

from cdn_externals.emitter import (
    build_asset_report,
    build_output_manifest,
    inject_assets,
    manifest_filename,
    write_output_manifest,
)
from cdn_externals.models import CdnDescriptor
from cdn_externals.registry import CdnRegistry


@pytest.fixture
def registry():
    reg = CdnRegistry()
    reg.put(
        "react",
        CdnDescriptor(
            name="react",
            var="React",
            version="16.8.0",
            path="/umd/react.production.min.js",
            url="https://unpkg.com/react@16.8.0/umd/react.production.min.js",
        ),
    )
    reg.put(
        "bootstrap",
        CdnDescriptor(
            name="bootstrap",
            var="bootstrap",
            version="4.3.1",
            path="/dist/js/bootstrap.min.js",
            style_path="/dist/css/bootstrap.min.css",
            url="https://unpkg.com/bootstrap@4.3.1/dist/js/bootstrap.min.js",
            style_url="https://unpkg.com/bootstrap@4.3.1/dist/css/bootstrap.min.css",
        ),
    )
    return reg


class TestOutputManifest:
    def test_entries_leave_out_urls(self, registry):
        manifest = build_output_manifest(registry.snapshot())
        assert manifest == {
            "react": {
                "name": "react",
                "var": "React",
                "version": "16.8.0",
                "path": "/umd/react.production.min.js",
            },
            "bootstrap": {
                "name": "bootstrap",
                "var": "bootstrap",
                "version": "4.3.1",
                "path": "/dist/js/bootstrap.min.js",
                "stylePath": "/dist/css/bootstrap.min.css",
            },
        }

    def test_filename(self):
        assert manifest_filename("main.js") == "main.js.dependencies.json"
        assert manifest_filename("[name].[hash].js") is None

    def test_write(self, registry, tmp_path):
        path = write_output_manifest(tmp_path / "dist", "lib.js", registry)
        assert path == tmp_path / "dist" / "lib.js.dependencies.json"
        assert list(json.loads(path.read_text())) == ["react", "bootstrap"]

    def test_templated_name_writes_nothing(self, registry, tmp_path):
        assert write_output_manifest(tmp_path, "[name].js", registry) is None
        assert list(tmp_path.iterdir()) == []


class TestAssets:
    def test_inject_prepends_cdn_urls(self, registry):
        result = inject_assets(
            {"js": ["main.js"], "css": ["main.css"], "publicPath": "/"}, registry.snapshot()
        )
        assert result["js"] == [
            "https://unpkg.com/react@16.8.0/umd/react.production.min.js",
            "https://unpkg.com/bootstrap@4.3.1/dist/js/bootstrap.min.js",
            "main.js",
        ]
        assert result["css"] == [
            "https://unpkg.com/bootstrap@4.3.1/dist/css/bootstrap.min.css",
            "main.css",
        ]
        assert result["publicPath"] == "/"

    def test_inject_into_empty_assets(self, registry):
        result = inject_assets({}, registry.snapshot())
        assert len(result["js"]) == 2
        assert len(result["css"]) == 1

    def test_report_without_output_dir(self, registry):
        report = build_asset_report(registry, "main.js")
        assert report.manifest_path is None
        assert len(report.js) == 2
        assert set(report.manifest) == {"react", "bootstrap"}

    def test_report_with_output_dir(self, registry, tmp_path):
        report = build_asset_report(registry, "main.js", tmp_path)
        assert report.manifest_path == tmp_path / "main.js.dependencies.json"
        assert report.manifest_path.is_file()

    def test_report_for_templated_name_has_no_manifest(self, registry, tmp_path):
        report = build_asset_report(registry, "[name].[contenthash].js", tmp_path)
        assert report.manifest == {}
        assert report.manifest_path is None
        assert len(report.js) == 2
