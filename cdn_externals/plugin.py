"""Build-tool integration — turns module requests into external references."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from cdn_externals.config import PluginOptions, get_environment
from cdn_externals.emitter import AssetReport, build_asset_report
from cdn_externals.locator import PackageLocator
from cdn_externals.logging import get_logger
from cdn_externals.manifest import ManifestExpander
from cdn_externals.models import ModuleReference, Outcome, Resolution, is_module_path
from cdn_externals.registry import CdnRegistry
from cdn_externals.strategy import get_strategy
from cdn_externals.walker import DependencyGraphWalker

EMPTY_VARIABLE = "{}"


@dataclass(frozen=True)
class ExternalModule:
    """A request the bundler must not package: it reads ``variable`` at runtime."""

    request: str
    variable: str
    kind: str = "var"


class DynamicCdnPlugin:
    """Per-build facade over the walker, wired the way a bundler hook needs it.

    Options are those of :class:`PluginOptions`; an invalid combination
    raises :class:`ConfigError` here, before any module is resolved.
    ``loglevel`` / ``verbose`` apply to this instance only: its loggers drop
    events below that level regardless of how the host configured structlog.
    """

    def __init__(self, root: str | Path | None = None, **options: Any) -> None:
        self.options = PluginOptions.build(**options)
        self.loglevel = self.options.effective_loglevel
        self.log = get_logger("cdn_externals.plugin", self.loglevel)

        self.registry = CdnRegistry()
        self.locator = PackageLocator(
            self.options.node_path, log=get_logger("cdn_externals.locator", self.loglevel)
        )
        self.expander = ManifestExpander(
            self.locator, root, log=get_logger("cdn_externals.manifest", self.loglevel)
        )
        self.strategy = get_strategy(self.options.resolver)
        self.walker = DependencyGraphWalker(
            self.strategy,
            self.registry,
            self.locator,
            self.expander,
            exclude=self.options.exclude,
            only=self.options.only,
            log=get_logger("cdn_externals.walker", self.loglevel),
        )

    @property
    def disabled(self) -> bool:
        return self.options.disable

    def environment_for(self, mode: str | None = None) -> str:
        return self.options.env or get_environment(mode)

    async def resolve(
        self, context_path: str | Path, module_path: str, mode: str | None = None
    ) -> Resolution:
        """Entry point for one module request: var name, ``EMPTY`` or ``NOT_ELIGIBLE``."""
        if self.disabled or not is_module_path(module_path):
            return Outcome.NOT_ELIGIBLE
        ref = ModuleReference(module_path, str(context_path), self.environment_for(mode))
        result = await self.walker.resolve_reference(ref)
        if result == "":
            return Outcome.EMPTY
        return result

    async def handle_request(
        self, context_path: str | Path, request: str, mode: str | None = None
    ) -> ExternalModule | None:
        """Module-factory hook: None means "let the bundler package it"."""
        result = await self.resolve(context_path, request, mode)
        if result is Outcome.NOT_ELIGIBLE:
            return None
        if result is Outcome.EMPTY:
            return ExternalModule(request=request, variable=EMPTY_VARIABLE)
        return ExternalModule(request=request, variable=result)

    async def resolve_all(
        self, context_path: str | Path, requests: Iterable[str], mode: str | None = None
    ) -> dict[str, ExternalModule | None]:
        """Handle many requests concurrently, as independent import sites would."""
        requests = list(dict.fromkeys(requests))
        results = await asyncio.gather(
            *(self.handle_request(context_path, r, mode) for r in requests)
        )
        return dict(zip(requests, results))

    def after_compile(
        self, output_filename: str, output_dir: str | Path | None = None
    ) -> AssetReport:
        """Collect CDN assets (and optionally write the output manifest) once compilation ends."""
        report = build_asset_report(self.registry, output_filename, output_dir)
        self.log.debug(
            "plugin.after_compile",
            modules=len(self.registry),
            manifest=str(report.manifest_path) if report.manifest_path else None,
        )
        return report
