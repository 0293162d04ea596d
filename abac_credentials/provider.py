"""Dispatch catalog descriptors to the resolver matching their credential strategy."""
from __future__ import annotations

import json
import threading
from typing import Any, Dict, Optional
from urllib.parse import quote

import boto3

from .connection import ConnectionDescriptor
from .errors import ConfigurationError, SecretValueError
from .identity import CallerIdentity
from .resolvers import DEFAULT_SIGNING_REGION, SecretResolver, SessionFactory, TokenResolver

IAM_PASSWORD_PLACEHOLDER = "password=%s"


class CredentialProvider:
    """Resolve credentials for catalog descriptors on behalf of a caller.

    One resolver, and therefore one cache, is kept per assumed role so that
    primary and metadata descriptors assuming different roles never share
    cached credentials.
    """

    def __init__(
        self,
        sts_client: Any,
        *,
        session_factory: SessionFactory = boto3.session.Session,
        region: Optional[str] = None,
        signing_region: str = DEFAULT_SIGNING_REGION,
    ) -> None:
        self.sts_client = sts_client
        self._session_factory = session_factory
        self._region = region
        self._signing_region = signing_region
        self._secret_resolvers: Dict[str, SecretResolver] = {}
        self._token_resolvers: Dict[str, TokenResolver] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_session(
        cls, session: boto3.session.Session, **kwargs: Any
    ) -> "CredentialProvider":
        """Create a provider whose STS client comes from *session*."""

        kwargs.setdefault("region", session.region_name)
        return cls(session.client("sts"), **kwargs)

    def secret_resolver(self, assume_role_arn: str) -> SecretResolver:
        with self._lock:
            resolver = self._secret_resolvers.get(assume_role_arn)
            if resolver is None:
                resolver = SecretResolver(
                    self.sts_client,
                    assume_role_arn,
                    session_factory=self._session_factory,
                    region=self._region,
                )
                self._secret_resolvers[assume_role_arn] = resolver
            return resolver

    def token_resolver(self, assume_role_arn: str) -> TokenResolver:
        with self._lock:
            resolver = self._token_resolvers.get(assume_role_arn)
            if resolver is None:
                resolver = TokenResolver(
                    self.sts_client,
                    assume_role_arn,
                    session_factory=self._session_factory,
                    signing_region=self._signing_region,
                )
                self._token_resolvers[assume_role_arn] = resolver
            return resolver

    def resolve(self, descriptor: ConnectionDescriptor, identity: CallerIdentity) -> Optional[str]:
        """Return the raw credential for *descriptor*, or ``None`` when none is needed."""

        strategy = descriptor.credential_strategy
        if strategy == "none":
            return None
        if not descriptor.assume_role_arn:
            raise ConfigurationError(
                f"Catalog '{descriptor.catalog}' needs an assume role ARN to resolve credentials"
            )
        if strategy == "secret":
            return self.secret_resolver(descriptor.assume_role_arn).resolve_secret(
                descriptor.secret_name, identity
            )
        return self.token_resolver(descriptor.assume_role_arn).resolve_password(
            descriptor.username, descriptor.endpoint, descriptor.port, identity
        )

    def render_connection_string(
        self, descriptor: ConnectionDescriptor, identity: CallerIdentity
    ) -> str:
        """Return the descriptor's connection string with credentials filled in.

        Secrets are expected to hold a JSON document with ``username`` and
        ``password``; the ``${secret}`` placeholder becomes
        ``user=<username>&password=<password>``. IAM tokens replace the
        ``password=%s`` placeholder, URL-quoted.
        """

        credential = self.resolve(descriptor, identity)
        if credential is None:
            return descriptor.connection_string
        if descriptor.credential_strategy == "secret":
            return descriptor.connection_string.replace(
                "${" + descriptor.secret_name + "}",
                _credentials_from_secret(descriptor.secret_name, credential),
            )
        return descriptor.connection_string.replace(
            IAM_PASSWORD_PLACEHOLDER, "password=" + quote(credential, safe="")
        )


def _credentials_from_secret(secret_name: str, secret_value: str) -> str:
    try:
        document = json.loads(secret_value)
    except ValueError as exc:
        raise SecretValueError(f"Secret '{secret_name}' is not a JSON document") from exc
    if not isinstance(document, dict) or "username" not in document or "password" not in document:
        raise SecretValueError(f"Secret '{secret_name}' must contain 'username' and 'password'")
    return f"user={document['username']}&password={document['password']}"


__all__ = ["CredentialProvider", "IAM_PASSWORD_PLACEHOLDER"]
