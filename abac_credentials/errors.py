"""Exceptions raised while building catalog configuration or resolving credentials."""
from __future__ import annotations


class ConfigurationError(ValueError):
    """Raised when connector configuration is missing or malformed."""


class CatalogLimitError(ConfigurationError):
    """Raised when more catalogs are configured than a single process may serve."""


class SecretValueError(RuntimeError):
    """Raised when a secret exists but carries no usable string value."""


__all__ = ["CatalogLimitError", "ConfigurationError", "SecretValueError"]
