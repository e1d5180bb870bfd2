"""Custom exceptions for cdn-externals."""


class CdnExternalsError(Exception):
    """Base exception for all cdn-externals errors."""


class ConfigError(CdnExternalsError):
    """Raised at construction when plugin options are invalid.

    The only fatal error: it aborts the build before any module is resolved.
    """


class ManifestError(CdnExternalsError):
    """Raised when no readable package.json exists above an install path."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot load package manifest for {path}: {reason}")


class CatalogError(CdnExternalsError):
    """Raised when a CDN catalog cannot be loaded or parsed."""
