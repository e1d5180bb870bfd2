"""Plugin options and build-environment detection."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from cdn_externals.exceptions import ConfigError
from cdn_externals.logging import DEFAULT_PLUGIN_LEVEL, to_level

DEVELOPMENT = "development"
PRODUCTION = "production"


def get_environment(mode: str | None) -> str:
    """Map a bundler mode to a CDN environment ("none" counts as development)."""
    if mode in ("none", DEVELOPMENT):
        return DEVELOPMENT
    return PRODUCTION


class PluginOptions(BaseModel):
    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    disable: bool = False
    env: str | None = None
    exclude: list[str] = Field(default_factory=list)
    only: list[str] | None = None
    resolver: Any = None
    loglevel: str = DEFAULT_PLUGIN_LEVEL
    verbose: bool = False
    node_path: list[str] = Field(default_factory=list)

    @field_validator("loglevel", mode="before")
    @classmethod
    def _normalise_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            to_level(v)
            v = v.strip().upper()
        return v

    @field_validator("exclude", mode="before")
    @classmethod
    def _none_is_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @property
    def effective_loglevel(self) -> str:
        return "DEBUG" if self.verbose else self.loglevel

    @classmethod
    def build(cls, **options: Any) -> PluginOptions:
        """Validate *options*, raising ConfigError for anything invalid."""
        try:
            opts = cls.model_validate(options)
        except ValidationError as exc:
            raise ConfigError(f"Invalid plugin options: {exc}") from exc
        if opts.exclude and opts.only:
            raise ConfigError("You can't use 'exclude' and 'only' at the same time")
        return opts
