"""Precomputed dependency manifests shipped next to CDN assets."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import structlog

from cdn_externals.locator import PackageLocator
from cdn_externals.models import CdnDescriptor

logger = structlog.get_logger("cdn_externals.manifest")

MANIFEST_SUFFIX = ".dependencies.json"


class ManifestExpander:
    """Look up ``<install root><descriptor.path>.dependencies.json``.

    The manifest's keys name dependencies already bundled into the CDN asset.
    """

    def __init__(
        self, locator: PackageLocator, root: str | Path | None = None, *, log: Any = None
    ) -> None:
        self.log = log if log is not None else logger
        self._locator = locator
        self._root = Path(root) if root is not None else Path.cwd()

    def manifest_path(self, descriptor: CdnDescriptor, from_directory: str | Path | None = None) -> Path | None:
        """Where the manifest for *descriptor* would live, or None if the package is not installed."""
        install_root = None
        if from_directory is not None:
            install_root = self._locator.locate(descriptor.name, from_directory)
        if install_root is None:
            install_root = self._locator.locate(descriptor.name, self._root)
        if install_root is None:
            return None
        return Path(f"{install_root}{descriptor.path}{MANIFEST_SUFFIX}")

    def load_dependency_manifest(
        self, descriptor: CdnDescriptor, from_directory: str | Path | None = None
    ) -> dict[str, Any] | None:
        """Return the manifest mapping, or None when there is no usable manifest.

        An empty manifest returns ``{}``, which is not the same as None.
        """
        path = self.manifest_path(descriptor, from_directory)
        if path is None or not path.is_file():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            self.log.warning("manifest.unreadable", path=str(path), error=str(exc))
            return None
        if not isinstance(data, dict):
            self.log.warning("manifest.not_an_object", path=str(path))
            return None
        return data

    async def aload_dependency_manifest(
        self, descriptor: CdnDescriptor, from_directory: str | Path | None = None
    ) -> dict[str, Any] | None:
        return await asyncio.to_thread(self.load_dependency_manifest, descriptor, from_directory)
