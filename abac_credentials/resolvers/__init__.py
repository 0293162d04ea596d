"""Credential resolvers that assume a role on behalf of the calling identity."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, Optional

import boto3

from ..cache import IdentityScopedCache
from ..identity import CallerIdentity, role_session_name

logger = logging.getLogger(__name__)

SessionFactory = Callable[..., boto3.session.Session]
"""Callable accepting boto3 ``Session`` keyword arguments."""


class AssumingRoleResolver:
    """Base class for resolvers that cache per identity and assume a role on a miss.

    ``sts_client`` is a boto3 STS client (or anything exposing
    ``assume_role``). The temporary credentials are wrapped in a session built
    by ``session_factory``, :class:`boto3.session.Session` by default.
    """

    def __init__(
        self,
        sts_client: Any,
        assume_role_arn: str,
        *,
        cache: Optional[IdentityScopedCache] = None,
        session_factory: SessionFactory = boto3.session.Session,
        region: Optional[str] = None,
    ) -> None:
        if sts_client is None:
            raise ValueError("Security token service client must be assigned")
        if not assume_role_arn or not assume_role_arn.strip():
            raise ValueError("A role ARN to assume must be provided")
        self.sts_client = sts_client
        self.assume_role_arn = assume_role_arn
        self.cache = cache if cache is not None else IdentityScopedCache()
        self._session_factory = session_factory
        self._region = region

    def assume_role(
        self,
        identity: CallerIdentity,
        *,
        tags: Optional[Iterable[Dict[str, str]]] = None,
    ) -> boto3.session.Session:
        """Assume the configured role for *identity* and return a scoped session."""

        request: Dict[str, Any] = {
            "RoleArn": self.assume_role_arn,
            "RoleSessionName": role_session_name(identity),
        }
        session_tags = list(tags or [])
        if session_tags:
            request["Tags"] = session_tags
        credentials = self.sts_client.assume_role(**request)["Credentials"]
        return self._session_factory(
            aws_access_key_id=credentials["AccessKeyId"],
            aws_secret_access_key=credentials["SecretAccessKey"],
            aws_session_token=credentials["SessionToken"],
            region_name=self._region,
        )


from .rds import DEFAULT_SIGNING_REGION, TokenResolver  # noqa: E402
from .secrets import SecretResolver  # noqa: E402

__all__ = [
    "AssumingRoleResolver",
    "DEFAULT_SIGNING_REGION",
    "SecretResolver",
    "SessionFactory",
    "TokenResolver",
]
