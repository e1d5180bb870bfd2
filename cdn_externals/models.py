"""Data models for CDN resolution."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field

# Leading package-name segment of an import specifier: "@scope/name" or "name".
MODULE_RE = re.compile(r"^((?:@[a-z\d][\w\-.]+/)?[a-z\d][\w\-.]*)")


def is_module_path(request: str) -> bool:
    """True for bare package imports; relative and absolute paths never match."""
    return MODULE_RE.match(request) is not None


def package_name_of(module_path: str) -> str | None:
    """Extract the package name from an import specifier (``@scope/pkg/sub`` -> ``@scope/pkg``)."""
    m = MODULE_RE.match(module_path)
    return m.group(1) if m else None


class Outcome(Enum):
    """Non-variable results of a resolution."""

    EMPTY = "empty"  # external, but exposed as an empty placeholder binding
    NOT_ELIGIBLE = "not_eligible"  # bundle normally


# A variable name (module is external) or one of the Outcome markers.
Resolution = Union[str, Outcome]


@dataclass(frozen=True)
class ModuleReference:
    """One import occurrence observed by the build tool."""

    module_path: str
    context_path: str
    environment: str

    @property
    def package_name(self) -> str | None:
        return package_name_of(self.module_path)


@dataclass
class PackageMetadata:
    """Fields read from the nearest package.json above an install directory."""

    version: str
    dependencies: dict[str, str] = field(default_factory=dict)
    peer_dependencies: dict[str, str] = field(default_factory=dict)
    name: str | None = None
    path: str | None = None  # the package.json that was read


class CdnDescriptor(BaseModel):
    """Resolved CDN location of one package. Immutable once produced."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    var: str
    version: str
    path: str
    style_path: str | None = Field(default=None, alias="stylePath")
    url: str
    style_url: str | None = Field(default=None, alias="styleUrl")

    @classmethod
    def coerce(cls, value: CdnDescriptor | Mapping[str, Any]) -> CdnDescriptor:
        """Accept a descriptor or a mapping in the camelCase wire shape."""
        if isinstance(value, cls):
            return value
        return cls.model_validate(dict(value))

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_manifest_entry(self) -> dict[str, str]:
        """Persisted form for the build-output manifest (URLs omitted)."""
        entry = {
            "name": self.name,
            "var": self.var,
            "version": self.version,
            "path": self.path,
        }
        if self.style_path is not None:
            entry["stylePath"] = self.style_path
        return entry
