"""End-of-build outputs derived from the registry snapshot."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from cdn_externals.manifest import MANIFEST_SUFFIX
from cdn_externals.models import CdnDescriptor
from cdn_externals.registry import CdnRegistry


@dataclass
class AssetReport:
    """What the asset-emission step produced for one build."""

    js: list[str] = field(default_factory=list)
    css: list[str] = field(default_factory=list)
    manifest: dict[str, dict[str, str]] = field(default_factory=dict)
    manifest_path: Path | None = None


def build_output_manifest(snapshot: Mapping[str, CdnDescriptor]) -> dict[str, dict[str, str]]:
    """``{module_path: {name, var, version, path, stylePath}}`` — URLs are left out."""
    return {module: descriptor.to_manifest_entry() for module, descriptor in snapshot.items()}


def manifest_filename(output_filename: str) -> str | None:
    """``<output>.dependencies.json``, or None for templated names like ``[name].js``."""
    if "[" in output_filename:
        return None
    return f"{output_filename}{MANIFEST_SUFFIX}"


def write_output_manifest(
    directory: str | Path, output_filename: str, registry: CdnRegistry
) -> Path | None:
    name = manifest_filename(output_filename)
    if name is None:
        return None
    path = Path(directory) / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(build_output_manifest(registry.snapshot())), encoding="utf-8")
    return path


def cdn_assets(snapshot: Mapping[str, CdnDescriptor]) -> tuple[list[str], list[str]]:
    """Script and stylesheet URLs in registry order."""
    js = [d.url for d in snapshot.values()]
    css = [d.style_url for d in snapshot.values() if d.style_url]
    return js, css


def inject_assets(
    assets: Mapping[str, Sequence[str]], snapshot: Mapping[str, CdnDescriptor]
) -> dict[str, Any]:
    """Prepend CDN URLs to an HTML template's ``js`` / ``css`` asset lists.

    CDN scripts go first so their globals exist before the bundle runs.
    """
    js, css = cdn_assets(snapshot)
    result: dict[str, Any] = dict(assets)
    result["js"] = js + list(assets.get("js", []))
    result["css"] = css + list(assets.get("css", []))
    return result


def build_asset_report(
    registry: CdnRegistry, output_filename: str, output_dir: str | Path | None = None
) -> AssetReport:
    """Assets for the HTML step plus the output manifest.

    ``manifest`` stays empty for templated output names, which never get a
    manifest file; otherwise it is filled even when nothing is written.
    """
    snapshot = registry.snapshot()
    js, css = cdn_assets(snapshot)
    report = AssetReport(js=js, css=css)
    if manifest_filename(output_filename) is None:
        return report
    report.manifest = build_output_manifest(snapshot)
    if output_dir is not None:
        report.manifest_path = write_output_manifest(output_dir, output_filename, registry)
    return report
