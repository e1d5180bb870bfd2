"""cdn-externals — decide which bundler imports can be served from a CDN."""

from cdn_externals.catalog import CatalogStrategy, RemoteCatalogStrategy
from cdn_externals.config import PluginOptions, get_environment
from cdn_externals.exceptions import CatalogError, CdnExternalsError, ConfigError, ManifestError
from cdn_externals.locator import PackageLocator
from cdn_externals.manifest import ManifestExpander
from cdn_externals.models import CdnDescriptor, ModuleReference, Outcome, PackageMetadata
from cdn_externals.plugin import DynamicCdnPlugin, ExternalModule
from cdn_externals.registry import CdnRegistry
from cdn_externals.strategy import FunctionStrategy, ResolutionStrategy, get_strategy
from cdn_externals.walker import DependencyGraphWalker

__all__ = [
    "CatalogError",
    "CatalogStrategy",
    "CdnDescriptor",
    "CdnExternalsError",
    "CdnRegistry",
    "ConfigError",
    "DependencyGraphWalker",
    "DynamicCdnPlugin",
    "ExternalModule",
    "FunctionStrategy",
    "ManifestError",
    "ManifestExpander",
    "ModuleReference",
    "Outcome",
    "PackageLocator",
    "PackageMetadata",
    "PluginOptions",
    "RemoteCatalogStrategy",
    "ResolutionStrategy",
    "get_environment",
    "get_strategy",
]
