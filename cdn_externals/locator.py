"""Locate installed npm packages and read their package.json."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import structlog

from cdn_externals.exceptions import ManifestError
from cdn_externals.models import PackageMetadata

logger = structlog.get_logger("cdn_externals.locator")

MANIFEST_NAME = "package.json"


class PackageLocator:
    """Find package install directories using node_modules lookup order."""

    def __init__(self, node_path: Sequence[str | Path] = (), *, log: Any = None) -> None:
        self.node_path = [Path(p) for p in node_path]
        self.log = log if log is not None else logger

    def locate(self, package_name: str, from_directory: str | Path) -> Path | None:
        """Search for ``node_modules/<package_name>`` from *from_directory* upward.

        Search order:
          1. <dir>/node_modules/<package_name> for each ancestor of
             from_directory, nearest first (directories that are themselves
             named node_modules are skipped)
          2. <root>/<package_name> for each extra root in node_path

        A candidate only counts if it contains a package.json.

        Returns:
            The package directory, or None if the package is not installed.
        """
        start = Path(from_directory).resolve()
        for directory in (start, *start.parents):
            if directory.name == "node_modules":
                continue
            candidate = directory / "node_modules" / package_name
            if (candidate / MANIFEST_NAME).is_file():
                return candidate

        for root in self.node_path:
            candidate = root / package_name
            if (candidate / MANIFEST_NAME).is_file():
                return candidate

        self.log.debug("locator.not_installed", package=package_name, cwd=str(start))
        return None

    def load_nearest_manifest(self, install_path: str | Path) -> PackageMetadata:
        """Read the first package.json found walking up from *install_path*.

        Missing ``dependencies`` / ``peerDependencies`` default to empty.

        Raises:
            ManifestError: no package.json above install_path, or it is not
                a JSON object.
        """
        start = Path(install_path).resolve()
        for directory in (start, *start.parents):
            manifest = directory / MANIFEST_NAME
            if not manifest.is_file():
                continue
            try:
                data = json.loads(manifest.read_text(encoding="utf-8"))
            except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
                raise ManifestError(str(manifest), str(exc)) from exc
            if not isinstance(data, dict):
                raise ManifestError(str(manifest), "not a JSON object")
            return PackageMetadata(
                version=str(data.get("version") or ""),
                dependencies=_name_map(data.get("dependencies")),
                peer_dependencies=_name_map(data.get("peerDependencies")),
                name=data.get("name"),
                path=str(manifest),
            )
        raise ManifestError(str(start), "no package.json found")

    # ── async wrappers ────────────────────────────────────────────────────

    async def alocate(self, package_name: str, from_directory: str | Path) -> Path | None:
        return await asyncio.to_thread(self.locate, package_name, from_directory)

    async def aload_nearest_manifest(self, install_path: str | Path) -> PackageMetadata:
        return await asyncio.to_thread(self.load_nearest_manifest, install_path)


def _name_map(value: object) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(k): str(v) for k, v in value.items()}
