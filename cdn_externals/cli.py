"""CLI entry point: cdn-externals.

Subcommands:
    cdn-externals resolve react react-dom --context ./app   # which imports come from a CDN
    cdn-externals resolve vue --mode development --json     # JSON report with the registry
    cdn-externals check-catalog catalog.json                 # validate a catalog file
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import click

from cdn_externals.catalog import CatalogStrategy, RemoteCatalogStrategy, load_catalog
from cdn_externals.exceptions import CatalogError, ConfigError
from cdn_externals.logging import setup_logging
from cdn_externals.plugin import DynamicCdnPlugin, ExternalModule
from cdn_externals.strategy import ResolutionStrategy


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
@click.option(
    "--log-format",
    type=click.Choice(["console", "json"]),
    default=None,
    help="Log renderer (default: $CDN_EXTERNALS_LOG_FORMAT or console)",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, log_format: str | None) -> None:
    """cdn-externals: serve bundler imports from a CDN when possible."""
    setup_logging(level="DEBUG" if verbose else None, fmt=log_format)
    ctx.obj = {"verbose": verbose}


def _build_strategy(catalog: str | None, catalog_url: str | None) -> ResolutionStrategy | None:
    if catalog and catalog_url:
        raise ConfigError("Use either --catalog or --catalog-url, not both")
    if catalog:
        return CatalogStrategy(catalog)
    if catalog_url:
        return RemoteCatalogStrategy(catalog_url)
    return None


def _describe(module: ExternalModule | None, plugin: DynamicCdnPlugin, request: str) -> str:
    if module is None:
        return f"  {request} -> bundled"
    descriptor = plugin.registry.get(request)
    url = f"  ({descriptor.url})" if descriptor else ""
    return f"  {request} -> {module.variable}{url}"


@main.command("resolve")
@click.argument("modules", nargs=-1, required=True)
@click.option(
    "--context",
    "context_path",
    default=".",
    type=click.Path(exists=True, file_okay=False),
    help="Directory of the importing file",
)
@click.option("--mode", default=None, help="Bundler mode: development | production | none")
@click.option("--env", default=None, help="CDN environment override")
@click.option("--exclude", multiple=True, help="Module to always bundle (repeatable)")
@click.option("--only", multiple=True, help="Only consider these modules (repeatable)")
@click.option("--catalog", type=click.Path(exists=True, dir_okay=False), help="Catalog JSON file")
@click.option("--catalog-url", default=None, help="Catalog JSON URL")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option(
    "--manifest-out",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory to write <output-filename>.dependencies.json into",
)
@click.option("--output-filename", default="main.js", help="Bundle filename the manifest is named after")
@click.pass_context
def resolve(
    ctx: click.Context,
    modules: tuple[str, ...],
    context_path: str,
    mode: str | None,
    env: str | None,
    exclude: tuple[str, ...],
    only: tuple[str, ...],
    catalog: str | None,
    catalog_url: str | None,
    as_json: bool,
    manifest_out: str | None,
    output_filename: str,
) -> None:
    """Resolve MODULES as if imported from a file in --context."""
    verbose = bool(ctx.obj and ctx.obj.get("verbose"))
    try:
        plugin = DynamicCdnPlugin(
            root=context_path,
            env=env,
            exclude=list(exclude),
            only=list(only) or None,
            resolver=_build_strategy(catalog, catalog_url),
            verbose=verbose,
        )
    except (ConfigError, CatalogError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)

    results = asyncio.run(plugin.resolve_all(Path(context_path), modules, mode))
    report = plugin.after_compile(output_filename, manifest_out)

    if as_json:
        payload = {
            "environment": plugin.environment_for(mode),
            "modules": {
                request: module.variable if module else None
                for request, module in results.items()
            },
            "registry": {
                name: descriptor.to_wire() for name, descriptor in plugin.registry.snapshot().items()
            },
            "assets": {"js": report.js, "css": report.css},
        }
        click.echo(json.dumps(payload, indent=2))
    else:
        external = sum(1 for m in results.values() if m is not None)
        click.echo(f"{external}/{len(results)} module(s) served from CDN "
                   f"({plugin.environment_for(mode)}):")
        for request, module in results.items():
            click.echo(_describe(module, plugin, request))
        extra = [name for name in plugin.registry if name not in results]
        if extra:
            click.echo(f"\nAlso registered via dependencies: {', '.join(extra)}")

    if report.manifest_path is not None:
        click.echo(f"Manifest written to {report.manifest_path}", err=True)


@main.command("check-catalog")
@click.argument("catalog_file", type=click.Path(exists=True, dir_okay=False))
def check_catalog(catalog_file: str) -> None:
    """Validate a catalog file and list its modules."""
    try:
        entries = load_catalog(catalog_file)
    except CatalogError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"{len(entries)} module(s) in {catalog_file}")
    for module_path, entry in sorted(entries.items()):
        click.echo(f"  {module_path:30s} {entry.var:20s} ranges={len(entry.ranges)}")


if __name__ == "__main__":
    main()
