"""Secrets Manager lookups performed under a role assumed for the caller."""
from __future__ import annotations

import logging

from ..cache import build_cache_key
from ..errors import SecretValueError
from ..identity import CallerIdentity
from . import AssumingRoleResolver

logger = logging.getLogger(__name__)


class SecretResolver(AssumingRoleResolver):
    """Fetch secrets through an assumed role, caching values per identity."""

    def resolve_secret(self, secret_name: str, identity: CallerIdentity) -> str:
        """Return the string value of *secret_name* as seen by *identity*.

        Role assumption and Secrets Manager errors propagate unchanged.
        """

        key = build_cache_key((secret_name,), identity)
        return self.cache.get_or_load(key, lambda: self._fetch(secret_name, identity))

    def _fetch(self, secret_name: str, identity: CallerIdentity) -> str:
        logger.info(
            "Resolving secret [%s] for identity [%s]; assuming role [%s]",
            secret_name,
            identity.arn,
            self.assume_role_arn,
        )
        session = self.assume_role(identity)
        response = session.client("secretsmanager").get_secret_value(SecretId=secret_name)
        value = response.get("SecretString")
        if value is None:
            raise SecretValueError(f"Secret '{secret_name}' has no string value")
        return value


__all__ = ["SecretResolver"]
