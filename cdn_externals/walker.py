"""DependencyGraphWalker — decide, per imported module, whether it is served from a CDN.

Resolution of one module:
  1. eligibility filter (exclude / only)
  2. locate the installed package (not installed -> bundle)
  3. read its package.json (version, dependencies, peerDependencies)
  4. registry check: same version -> cached var, other version -> conflict
  5. ask the resolution strategy for a CDN descriptor
  6. expand sub-dependencies: the CDN asset's dependency manifest if there is
     one, otherwise the declared dependencies (sequential, outcome ignored)
     and then the peer dependencies (concurrent, all must resolve)
  7. commit the descriptor to the registry and return its var

Every failure is absorbed as ``Outcome.NOT_ELIGIBLE`` so the build can fall
back to bundling the module.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from cdn_externals.exceptions import ConfigError, ManifestError
from cdn_externals.locator import PackageLocator
from cdn_externals.manifest import ManifestExpander
from cdn_externals.models import (
    CdnDescriptor,
    ModuleReference,
    Outcome,
    PackageMetadata,
    Resolution,
    package_name_of,
)
from cdn_externals.registry import CdnRegistry
from cdn_externals.strategy import ResolutionStrategy

logger = structlog.get_logger("cdn_externals.walker")

NOT_ELIGIBLE = Outcome.NOT_ELIGIBLE


def is_resolved(result: Resolution) -> bool:
    """True when *result* is a usable variable name."""
    return isinstance(result, str) and bool(result)


@dataclass
class _InFlight:
    """A first-time resolution other callers can join."""

    version: str
    task: asyncio.Future[Resolution]


class DependencyGraphWalker:
    """Recursive resolver over a module's dependency subtree.

    Holds no global state: the registry, locator, expander and strategy are
    all injected and owned by the caller for the duration of one build.
    """

    def __init__(
        self,
        strategy: ResolutionStrategy,
        registry: CdnRegistry,
        locator: PackageLocator | None = None,
        expander: ManifestExpander | None = None,
        *,
        exclude: Iterable[str] | None = None,
        only: Iterable[str] | None = None,
        log: Any = None,
    ) -> None:
        exclude = list(exclude or [])
        only = list(only) if only is not None else None
        if exclude and only:
            raise ConfigError("You can't use 'exclude' and 'only' at the same time")

        self.strategy = strategy
        self.registry = registry
        self.locator = locator or PackageLocator()
        self.expander = expander or ManifestExpander(self.locator)
        self.exclude = frozenset(exclude)
        self.only = frozenset(only) if only is not None else None
        self.log = log if log is not None else logger

        self._in_flight: dict[str, _InFlight] = {}
        # module -> modules its resolution is currently awaiting
        self._waits: dict[str, Counter[str]] = {}

    # ── public ────────────────────────────────────────────────────────────

    def is_eligible(self, module_path: str) -> bool:
        if module_path in self.exclude:
            return False
        return self.only is None or module_path in self.only

    async def resolve(
        self, context_path: str | Path, module_path: str, environment: str
    ) -> Resolution:
        """Resolve one import; returns the global variable name or ``NOT_ELIGIBLE``."""
        return await self._resolve(str(context_path), module_path, environment, parent=None)

    async def resolve_reference(self, ref: ModuleReference) -> Resolution:
        return await self.resolve(ref.context_path, ref.module_path, ref.environment)

    # ── steps 1-4 + in-flight de-duplication ──────────────────────────────

    async def _resolve(
        self,
        context_path: str,
        module_path: str,
        environment: str,
        parent: str | None,
    ) -> Resolution:
        if not self.is_eligible(module_path):
            self.log.debug("walker.excluded", module=module_path)
            return NOT_ELIGIBLE

        package_name = package_name_of(module_path)
        if package_name is None:
            return NOT_ELIGIBLE
        install_path = await self.locator.alocate(package_name, context_path)
        if install_path is None:
            return NOT_ELIGIBLE

        try:
            metadata = await self.locator.aload_nearest_manifest(install_path)
        except ManifestError as exc:
            self.log.warning("walker.manifest_error", module=module_path, error=str(exc))
            return NOT_ELIGIBLE
        version = metadata.version

        # No awaits from here until the in-flight entry exists.
        existing = self.registry.get(module_path)
        if existing is not None:
            if existing.version == version:
                return existing.var
            self._log_conflict(module_path, version, existing.version)
            return NOT_ELIGIBLE

        pending = self._in_flight.get(module_path)
        if pending is not None:
            if pending.version != version:
                self._log_conflict(module_path, version, pending.version)
                return NOT_ELIGIBLE
            if parent is not None and self._would_deadlock(parent, module_path):
                self.log.debug("walker.cycle", module=module_path, requested_by=parent)
                return NOT_ELIGIBLE
            return await self._wait_for(pending.task, parent, module_path)

        task = asyncio.ensure_future(
            self._resolve_new(context_path, module_path, environment, metadata)
        )
        entry = _InFlight(version=version, task=task)
        self._in_flight[module_path] = entry
        task.add_done_callback(lambda _: self._forget(module_path, entry))
        return await self._wait_for(task, parent, module_path)

    # ── steps 5-7 ─────────────────────────────────────────────────────────

    async def _resolve_new(
        self,
        context_path: str,
        module_path: str,
        environment: str,
        metadata: PackageMetadata,
    ) -> Resolution:
        version = metadata.version
        try:
            result = await self.strategy.resolve(module_path, version, environment)
            descriptor = CdnDescriptor.coerce(result) if result is not None else None
        except Exception:
            self.log.exception("walker.strategy_error", module=module_path, version=version)
            return NOT_ELIGIBLE

        if descriptor is None:
            self.log.debug(
                "walker.not_found",
                module=module_path,
                version=version,
                hint="add it to your resolver if it should come from a CDN",
            )
            return NOT_ELIGIBLE

        dep_manifest = await self.expander.aload_dependency_manifest(descriptor, context_path)
        if dep_manifest is not None:
            # The CDN asset already bundles these; resolve them for completeness only.
            await self._expand(context_path, dep_manifest, environment, module_path)
        else:
            await self._expand(context_path, metadata.dependencies, environment, module_path)
            if metadata.peer_dependencies:
                peers_ok = await self._resolve_peers(
                    context_path, module_path, version, metadata.peer_dependencies, environment
                )
                if not peers_ok:
                    return NOT_ELIGIBLE

        if not self.registry.put(module_path, descriptor):
            self.log.warning("walker.already_registered", module=module_path, version=version)
        self.log.debug("walker.resolved", module=module_path, version=version, url=descriptor.url)
        return descriptor.var

    async def _expand(
        self,
        context_path: str,
        names: Mapping[str, object],
        environment: str,
        parent: str,
    ) -> None:
        """Resolve dependencies one after another, ignoring their outcomes."""
        for name in list(names):
            await self._resolve(context_path, name, environment, parent=parent)

    async def _resolve_peers(
        self,
        context_path: str,
        module_path: str,
        version: str,
        peers: Mapping[str, str],
        environment: str,
    ) -> bool:
        """Resolve all peer dependencies concurrently; True only if every one resolved."""

        async def _one(peer: str) -> bool:
            result = await self._resolve(context_path, peer, environment, parent=module_path)
            if not is_resolved(result):
                self.log.error(
                    "walker.peer_missing",
                    module=module_path,
                    version=version,
                    peer=peer,
                    reason="peer dependency could not be loaded from the CDN",
                )
                return False
            return True

        results = await asyncio.gather(*(_one(peer) for peer in peers))
        return all(results)

    # ── in-flight bookkeeping ─────────────────────────────────────────────

    async def _wait_for(
        self, task: asyncio.Future[Resolution], parent: str | None, module_path: str
    ) -> Resolution:
        if parent is None:
            return await asyncio.shield(task)
        waits = self._waits.setdefault(parent, Counter())
        waits[module_path] += 1
        try:
            return await asyncio.shield(task)
        finally:
            waits[module_path] -= 1
            if waits[module_path] <= 0:
                del waits[module_path]
            if not waits:
                self._waits.pop(parent, None)

    def _would_deadlock(self, parent: str, module_path: str) -> bool:
        """True if *module_path*'s resolution is (transitively) waiting on *parent*."""
        if module_path == parent:
            return True
        seen = {module_path}
        stack = [module_path]
        while stack:
            current = stack.pop()
            for child in self._waits.get(current, ()):
                if child == parent:
                    return True
                if child not in seen:
                    seen.add(child)
                    stack.append(child)
        return False

    def _forget(self, module_path: str, entry: _InFlight) -> None:
        if self._in_flight.get(module_path) is entry:
            del self._in_flight[module_path]

    def _log_conflict(self, module_path: str, version: str, loaded_version: str) -> None:
        self.log.warning(
            "walker.version_conflict",
            module=module_path,
            version=version,
            loaded_version=loaded_version,
            hint="already loaded in another version, the dependency is present twice",
        )
