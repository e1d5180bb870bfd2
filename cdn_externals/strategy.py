"""Resolution strategy interface — maps package + version + env to a CDN descriptor."""

from __future__ import annotations

import inspect
from collections.abc import Callable, Mapping
from typing import Any, Protocol, runtime_checkable

from cdn_externals.exceptions import ConfigError
from cdn_externals.models import CdnDescriptor

StrategyResult = CdnDescriptor | Mapping[str, Any] | None


@runtime_checkable
class ResolutionStrategy(Protocol):
    """Interface every resolution strategy must satisfy.

    ``None`` means "no known CDN mapping" and is a normal outcome, not an error.
    """

    async def resolve(
        self, package_name: str, version: str, environment: str
    ) -> CdnDescriptor | None: ...


class FunctionStrategy:
    """Adapt a plain callable ``(package_name, version, environment)``.

    The callable may be sync or async and may return a descriptor, a mapping
    in wire shape (``stylePath``/``styleUrl`` keys), or None.
    """

    def __init__(self, fn: Callable[[str, str, str], Any]) -> None:
        self._fn = fn

    async def resolve(
        self, package_name: str, version: str, environment: str
    ) -> CdnDescriptor | None:
        result = self._fn(package_name, version, environment)
        if inspect.isawaitable(result):
            result = await result
        if result is None:
            return None
        return CdnDescriptor.coerce(result)

    def __repr__(self) -> str:
        return f"FunctionStrategy({getattr(self._fn, '__name__', self._fn)!r})"


def get_strategy(resolver: Any = None) -> ResolutionStrategy:
    """Normalise the ``resolver`` option into a ResolutionStrategy.

    None selects the built-in catalog strategy.
    """
    if resolver is None:
        from cdn_externals.catalog import CatalogStrategy

        return CatalogStrategy()
    if isinstance(resolver, ResolutionStrategy):
        return resolver
    if callable(resolver):
        return FunctionStrategy(resolver)
    raise ConfigError(
        f"resolver must be a callable or an object with an async resolve(), "
        f"got {type(resolver).__name__}"
    )
