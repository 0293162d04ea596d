"""IAM database authentication tokens generated under a tagged role session."""
from __future__ import annotations

import logging
from typing import Any, Optional

import boto3

from ..cache import IdentityScopedCache, build_cache_key
from ..identity import CallerIdentity
from . import AssumingRoleResolver, SessionFactory

logger = logging.getLogger(__name__)

DEFAULT_SIGNING_REGION = "eu-west-1"


class TokenResolver(AssumingRoleResolver):
    """Generate RDS IAM auth tokens, forwarding the caller's principal tags.

    Every principal tag of the caller becomes a role-session tag, in order and
    unfiltered, so that the assumed role's policies can condition on them.
    Tokens are signed for :attr:`signing_region`.
    """

    def __init__(
        self,
        sts_client: Any,
        assume_role_arn: str,
        *,
        cache: Optional[IdentityScopedCache] = None,
        session_factory: SessionFactory = boto3.session.Session,
        signing_region: str = DEFAULT_SIGNING_REGION,
    ) -> None:
        super().__init__(
            sts_client,
            assume_role_arn,
            cache=cache,
            session_factory=session_factory,
            region=signing_region,
        )
        self.signing_region = signing_region

    def resolve_password(
        self, username: str, endpoint: str, port: int, identity: CallerIdentity
    ) -> str:
        """Return an auth token for ``username@endpoint:port`` on behalf of *identity*."""

        key = build_cache_key((username, endpoint, port), identity)
        return self.cache.get_or_load(
            key, lambda: self._generate(username, endpoint, port, identity)
        )

    def _generate(
        self, username: str, endpoint: str, port: int, identity: CallerIdentity
    ) -> str:
        logger.info(
            "Resolving IAM auth password for db user [%s] in database [%s:%s]. "
            "Querying identity [%s]. Will assume role [%s]",
            username,
            endpoint,
            port,
            identity.arn,
            self.assume_role_arn,
        )
        session = self.assume_role(identity, tags=identity.session_tags())
        rds = session.client("rds", region_name=self.signing_region)
        return rds.generate_db_auth_token(
            DBHostname=endpoint,
            Port=port,
            DBUsername=username,
            Region=self.signing_region,
        )


__all__ = ["DEFAULT_SIGNING_REGION", "TokenResolver"]
