"""Catalog connection descriptors built from environment-style configuration."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Mapping, Optional, Tuple

from .errors import CatalogLimitError, ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONNECTION_STRING_PROPERTY = "default"
CONNECTION_STRING_SUFFIX = "_connection_string"
META_CONNECTION_STRING_SUFFIX = "_meta_connection_string"
ASSUME_ROLE_SUFFIX = "_assume_role_arn"
META_ASSUME_ROLE_SUFFIX = "_meta_assume_role_arn"
MUX_CATALOG_LIMIT = 100

CONNECTION_STRING_PATTERN = re.compile(r"([a-zA-Z]+)://(.*)")
SECRET_PATTERN = re.compile(r"\$\{([a-zA-Z0-9:/_+=.@-]+)}")
IAM_PASSWORD_PATTERN = re.compile(r"(user=[^&%]+&password=%s)|(password=%s&user=[^&%]+)")
# host, port and user of ``jdbc:<subprotocol>://host:port/db?...user=name``;
# the ``<subprotocol>://`` part may be omitted.
CONNECTION_STRING_PARTS_PATTERN = re.compile(r"jdbc:(?:\w+://)?([^:/?]+):(\d+)[^?]*\?.*user=([^&]+)")


class DatabaseEngine(Enum):
    """Database engines a catalog connection string may name."""

    MYSQL = "mysql"
    POSTGRES = "postgres"
    REDSHIFT = "redshift"

    @classmethod
    def from_scheme(cls, scheme: str) -> "DatabaseEngine":
        try:
            return cls[scheme.upper()]
        except KeyError:
            valid = ", ".join(engine.value for engine in cls)
            raise ConfigurationError(
                f"Unknown database type '{scheme}'. Valid types: {valid}"
            ) from None


@dataclass(frozen=True)
class ConnectionDescriptor:
    """How to connect to one catalog and where its credentials come from.

    Exactly one credential strategy applies: ``secret_name`` is set for
    catalogs whose credentials live in Secrets Manager, ``iam_auth`` is set
    (together with ``username``, ``endpoint`` and ``port``) for catalogs that
    authenticate with a generated IAM token, and neither is set for catalogs
    whose connection string already carries everything it needs.
    """

    catalog: str
    engine: DatabaseEngine
    connection_string: str
    secret_name: Optional[str] = None
    assume_role_arn: Optional[str] = None
    iam_auth: bool = False
    username: Optional[str] = None
    endpoint: Optional[str] = None
    port: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.catalog or not self.catalog.strip():
            raise ConfigurationError("catalog must not be blank")
        if not self.connection_string or not self.connection_string.strip():
            raise ConfigurationError(
                f"Connection string for catalog '{self.catalog}' must not be blank"
            )
        if self.iam_auth:
            if not (self.username and self.endpoint and self.port):
                raise ConfigurationError(
                    f"IAM authentication for catalog '{self.catalog}' requires username, endpoint and port"
                )
            if self.secret_name:
                raise ConfigurationError(
                    f"Catalog '{self.catalog}' cannot use both a secret and IAM authentication"
                )

    @property
    def credential_strategy(self) -> str:
        """Return ``"secret"``, ``"iam"`` or ``"none"``."""

        if self.secret_name:
            return "secret"
        if self.iam_auth:
            return "iam"
        return "none"


ConnectionDescriptorPair = Tuple[ConnectionDescriptor, ConnectionDescriptor]


class ConnectionConfigBuilder:
    """Build per-catalog connection descriptors from flat properties.

    Properties follow the environment variable layout of the connector:

    ``default``
        Connection string for catalogs without their own entry (required).
    ``<catalog>_connection_string``
        Connection string for ``<catalog>``.
    ``<catalog>_assume_role_arn``
        Role assumed before resolving credentials for ``<catalog>``.
    ``<catalog>_meta_connection_string`` / ``<catalog>_meta_assume_role_arn``
        Overrides used for metadata discovery.
    """

    def __init__(self, properties: Optional[Mapping[str, str]] = None) -> None:
        self._properties: Mapping[str, str] = properties or {}

    def properties(self, properties: Mapping[str, str]) -> "ConnectionConfigBuilder":
        self._properties = properties
        return self

    def build(self) -> List[ConnectionDescriptorPair]:
        """Return ``(primary, metadata)`` descriptor pairs, one per catalog.

        Raises :class:`ConfigurationError` for missing or malformed properties
        and :class:`CatalogLimitError` when more than
        :data:`MUX_CATALOG_LIMIT` catalogs are configured.
        """

        properties = self._properties
        if not properties:
            raise ConfigurationError("properties must not be empty")
        default = properties.get(DEFAULT_CONNECTION_STRING_PROPERTY)
        if not default or not default.strip():
            raise ConfigurationError("Default connection string must be present")

        pairs: List[ConnectionDescriptorPair] = []
        for key, connection_string in properties.items():
            catalog = _catalog_name(key)
            if catalog is None:
                continue

            primary = _extract_descriptor(
                catalog, connection_string, properties.get(catalog + ASSUME_ROLE_SUFFIX)
            )
            metadata = primary
            meta_connection_string = properties.get(catalog + META_CONNECTION_STRING_SUFFIX)
            if meta_connection_string and meta_connection_string.strip():
                metadata = _extract_descriptor(
                    catalog,
                    meta_connection_string,
                    properties.get(catalog + META_ASSUME_ROLE_SUFFIX),
                )
            pairs.append((primary, metadata))

        if len(pairs) > MUX_CATALOG_LIMIT:
            raise CatalogLimitError(
                f"Too many database instances in mux. Max supported is {MUX_CATALOG_LIMIT}"
            )

        logger.debug("Built connection configuration for catalogs %s", [p.catalog for p, _ in pairs])
        return pairs


def build_from_environ(environ: Optional[Mapping[str, str]] = None) -> List[ConnectionDescriptorPair]:
    """Build descriptor pairs from *environ*, defaulting to :data:`os.environ`."""

    return ConnectionConfigBuilder(dict(os.environ if environ is None else environ)).build()


def _catalog_name(key: str) -> Optional[str]:
    if key.lower() == DEFAULT_CONNECTION_STRING_PROPERTY:
        return DEFAULT_CONNECTION_STRING_PROPERTY
    # ``<c>_meta_connection_string`` also names a catalog, ``<c>_meta``.
    if key.endswith(CONNECTION_STRING_SUFFIX):
        return key[: -len(CONNECTION_STRING_SUFFIX)]
    return None


def _extract_secret_name(connection_string: str) -> Optional[str]:
    match = SECRET_PATTERN.search(connection_string)
    if match and match.group(1).strip():
        return match.group(1)
    return None


def _extract_descriptor(
    catalog: str, connection_string: str, assume_role_arn: Optional[str]
) -> ConnectionDescriptor:
    match = CONNECTION_STRING_PATTERN.search(connection_string or "")
    if not match:
        raise ConfigurationError(f"Invalid connection string for catalog '{catalog}'")
    scheme, jdbc_connection_string = match.group(1), match.group(2)
    if not jdbc_connection_string.strip():
        raise ConfigurationError(f"JDBC connection string for catalog '{catalog}' must not be blank")

    engine = DatabaseEngine.from_scheme(scheme)
    role = assume_role_arn or None

    secret_name = _extract_secret_name(jdbc_connection_string)
    if secret_name:
        return ConnectionDescriptor(
            catalog=catalog,
            engine=engine,
            connection_string=jdbc_connection_string,
            secret_name=secret_name,
            assume_role_arn=role,
        )

    if IAM_PASSWORD_PATTERN.search(connection_string):
        parts = CONNECTION_STRING_PARTS_PATTERN.search(connection_string)
        if not parts:
            raise ConfigurationError(
                f"Could not find host, port and username in connection string for catalog '{catalog}'"
            )
        endpoint, port, username = parts.groups()
        return ConnectionDescriptor(
            catalog=catalog,
            engine=engine,
            connection_string=jdbc_connection_string,
            assume_role_arn=role,
            iam_auth=True,
            username=username,
            endpoint=endpoint,
            port=int(port),
        )

    return ConnectionDescriptor(catalog=catalog, engine=engine, connection_string=jdbc_connection_string)


__all__ = [
    "CONNECTION_STRING_SUFFIX",
    "ConnectionConfigBuilder",
    "ConnectionDescriptor",
    "ConnectionDescriptorPair",
    "DEFAULT_CONNECTION_STRING_PROPERTY",
    "DatabaseEngine",
    "MUX_CATALOG_LIMIT",
    "SECRET_PATTERN",
    "build_from_environ",
]
