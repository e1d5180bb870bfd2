"""Per-build registry of modules served from a CDN."""

from __future__ import annotations

from collections.abc import Iterator

from cdn_externals.models import CdnDescriptor


class CdnRegistry:
    """Mapping from import path to its resolved CDN descriptor.

    One instance per build. Written by the walker's commit step, read by the
    asset emitters once compilation is over. First write wins: version
    conflicts are detected by the caller before ``put``.
    """

    def __init__(self) -> None:
        self._modules: dict[str, CdnDescriptor] = {}

    def put(self, module_path: str, descriptor: CdnDescriptor) -> bool:
        """Store *descriptor*; returns False (and keeps the old entry) if the key exists."""
        if module_path in self._modules:
            return False
        self._modules[module_path] = descriptor
        return True

    def get(self, module_path: str) -> CdnDescriptor | None:
        return self._modules.get(module_path)

    def snapshot(self) -> dict[str, CdnDescriptor]:
        """Insertion-ordered copy for end-of-build consumers."""
        return dict(self._modules)

    def clear(self) -> None:
        self._modules.clear()

    def __contains__(self, module_path: object) -> bool:
        return module_path in self._modules

    def __len__(self) -> int:
        return len(self._modules)

    def __iter__(self) -> Iterator[str]:
        return iter(self._modules)
