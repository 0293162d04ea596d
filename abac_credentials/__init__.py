"""Identity-scoped database credential resolution for multiplexed catalogs."""

from __future__ import annotations

from .cache import CacheEntry, IdentityScopedCache, build_cache_key
from .connection import (
    ConnectionConfigBuilder,
    ConnectionDescriptor,
    DatabaseEngine,
    build_from_environ,
)
from .errors import CatalogLimitError, ConfigurationError, SecretValueError
from .identity import CallerIdentity, role_session_name
from .provider import CredentialProvider
from .resolvers import SecretResolver, TokenResolver

__all__ = [
    "CacheEntry",
    "CallerIdentity",
    "CatalogLimitError",
    "ConfigurationError",
    "ConnectionConfigBuilder",
    "ConnectionDescriptor",
    "CredentialProvider",
    "DatabaseEngine",
    "IdentityScopedCache",
    "SecretResolver",
    "SecretValueError",
    "TokenResolver",
    "build_cache_key",
    "build_from_environ",
    "role_session_name",
]
