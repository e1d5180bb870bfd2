"""Built-in resolution strategy backed by a module → CDN path catalog.

Catalog format (JSON)::

    {
      "react": {
        "var": "React",
        "versions": {
          ">=16.0.0": {
            "development": "/umd/react.development.js",
            "production": "/umd/react.production.min.js"
          }
        }
      }
    }

An entry may also set ``name`` (the npm package, when the key is a deep
import such as ``react-dom/server``) and, per version range, ``style``
(a path string, or a development/production mapping like the script path).
Ranges use npm semantics; the first range the installed version satisfies wins.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx
import structlog
from semantic_version import NpmSpec, Version

from cdn_externals.exceptions import CatalogError
from cdn_externals.models import CdnDescriptor, package_name_of

log = structlog.get_logger("cdn_externals.catalog")

DEFAULT_CATALOG = Path(__file__).parent / "data" / "modules.json"
DEFAULT_URL_TEMPLATE = "https://unpkg.com/{name}@{version}{path}"

_FALLBACK_ENV = "production"
_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 0.5  # seconds


@dataclass
class CatalogEntry:
    """Parsed catalog record for one module path."""

    name: str
    var: str
    ranges: list[tuple[NpmSpec, dict[str, Any]]]

    def paths_for(self, version: str) -> dict[str, Any] | None:
        parsed = _parse_version(version)
        if parsed is None:
            return None
        for spec, paths in self.ranges:
            if spec.match(parsed):
                return paths
        return None


def parse_catalog(data: Any) -> dict[str, CatalogEntry]:
    """Validate raw catalog JSON and pre-compile its version ranges."""
    if not isinstance(data, dict):
        raise CatalogError("catalog must be a JSON object")

    entries: dict[str, CatalogEntry] = {}
    for module_path, info in data.items():
        if not isinstance(info, dict) or not info.get("var"):
            raise CatalogError(f"catalog entry {module_path!r} has no 'var'")
        versions = info.get("versions")
        if not isinstance(versions, dict) or not versions:
            raise CatalogError(f"catalog entry {module_path!r} has no 'versions'")

        ranges: list[tuple[NpmSpec, dict[str, Any]]] = []
        for expr, paths in versions.items():
            try:
                spec = NpmSpec(expr)
            except ValueError as exc:
                raise CatalogError(
                    f"catalog entry {module_path!r}: invalid range {expr!r}"
                ) from exc
            if not isinstance(paths, dict) or _FALLBACK_ENV not in paths:
                raise CatalogError(
                    f"catalog entry {module_path!r}: range {expr!r} needs a "
                    f"'{_FALLBACK_ENV}' path"
                )
            ranges.append((spec, paths))

        entries[module_path] = CatalogEntry(
            name=info.get("name") or package_name_of(module_path) or module_path,
            var=info["var"],
            ranges=ranges,
        )
    return entries


def load_catalog(path: str | Path) -> dict[str, CatalogEntry]:
    """Read and parse a catalog JSON file."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise CatalogError(f"cannot read catalog {path}: {exc}") from exc
    return parse_catalog(data)


class CatalogStrategy:
    """Resolve modules from an in-memory catalog (the default strategy)."""

    def __init__(
        self,
        catalog: Mapping[str, CatalogEntry] | str | Path | None = None,
        url_template: str = DEFAULT_URL_TEMPLATE,
    ) -> None:
        if catalog is None:
            catalog = DEFAULT_CATALOG
        if isinstance(catalog, (str, Path)):
            catalog = load_catalog(catalog)
        self.entries: dict[str, CatalogEntry] = dict(catalog)
        self.url_template = url_template

    async def resolve(
        self, package_name: str, version: str, environment: str
    ) -> CdnDescriptor | None:
        return self.lookup(package_name, version, environment)

    def lookup(self, module_path: str, version: str, environment: str) -> CdnDescriptor | None:
        entry = self.entries.get(module_path)
        if entry is None:
            return None
        paths = entry.paths_for(version)
        if paths is None:
            return None

        path = _pick(paths, environment) or ""
        style_path = _pick(paths["style"], environment) if "style" in paths else None
        return CdnDescriptor(
            name=entry.name,
            var=entry.var,
            version=version,
            path=path,
            style_path=style_path,
            url=self._url(entry.name, version, path),
            style_url=self._url(entry.name, version, style_path) if style_path else None,
        )

    def _url(self, name: str, version: str, path: str) -> str:
        return self.url_template.format(name=name, version=version, path=path)


class RemoteCatalogStrategy(CatalogStrategy):
    """Catalog strategy whose catalog is fetched over HTTP on first use."""

    def __init__(
        self,
        url: str,
        url_template: str = DEFAULT_URL_TEMPLATE,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
    ) -> None:
        super().__init__(catalog={}, url_template=url_template)
        self.catalog_url = url
        self._client = client
        self._timeout = timeout
        self._lock = asyncio.Lock()
        self._loaded = False
        self._error: CatalogError | None = None

    async def resolve(
        self, package_name: str, version: str, environment: str
    ) -> CdnDescriptor | None:
        await self.ensure_loaded()
        return self.lookup(package_name, version, environment)

    async def ensure_loaded(self) -> None:
        """Fetch the catalog once; concurrent callers wait on the same fetch.

        A failed fetch is remembered and re-raised without refetching.
        """
        async with self._lock:
            if self._error is not None:
                raise self._error
            if self._loaded:
                return
            try:
                data = await self._fetch()
                self.entries = parse_catalog(data)
            except CatalogError as exc:
                self._error = exc
                raise
            self._loaded = True
            log.info("catalog.loaded", url=self.catalog_url, modules=len(self.entries))

    async def _fetch(self) -> Any:
        if self._client is not None:
            return await self._get_with_retry(self._client)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await self._get_with_retry(client)

    async def _get_with_retry(self, client: httpx.AsyncClient) -> Any:
        """GET with exponential backoff on 5xx and transport errors."""
        last_error = ""
        for attempt in range(_MAX_RETRIES):
            try:
                resp = await client.get(self.catalog_url)
                if resp.status_code < 500:
                    resp.raise_for_status()
                    return resp.json()
                last_error = f"HTTP {resp.status_code}"
                log.warning(
                    "catalog.server_error",
                    url=self.catalog_url,
                    status=resp.status_code,
                    attempt=attempt + 1,
                    max_retries=_MAX_RETRIES,
                )
            except httpx.HTTPStatusError as exc:
                raise CatalogError(
                    f"cannot fetch catalog {self.catalog_url}: HTTP {exc.response.status_code}"
                ) from exc
            except httpx.TransportError as exc:
                last_error = str(exc) or type(exc).__name__
                log.warning(
                    "catalog.transport_error",
                    url=self.catalog_url,
                    error=last_error,
                    attempt=attempt + 1,
                    max_retries=_MAX_RETRIES,
                )
            except ValueError as exc:
                raise CatalogError(f"catalog {self.catalog_url} is not valid JSON") from exc

            if attempt < _MAX_RETRIES - 1:
                await asyncio.sleep(_RETRY_BASE_DELAY * (2**attempt))

        raise CatalogError(f"cannot fetch catalog {self.catalog_url}: {last_error}")


def _pick(paths: Any, environment: str) -> str | None:
    if isinstance(paths, str):
        return paths
    return paths.get(environment) or paths.get(_FALLBACK_ENV)


def _parse_version(version: str) -> Version | None:
    try:
        return Version(version)
    except ValueError:
        pass
    try:
        return Version.coerce(version)
    except ValueError:
        return None
