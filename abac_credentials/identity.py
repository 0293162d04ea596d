"""Caller identity passed in by the request layer and role-session naming."""
from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

# STS session names allow ``\w+=,.@-``; an email address embedded in a
# federated ARN makes a readable, auditable session name.
SESSION_NAME_PATTERN = re.compile(r"(\w+\.\w+@\w+\.\w+)")


@dataclass(frozen=True)
class CallerIdentity:
    """The principal on whose behalf a credential is resolved.

    ``tags`` keeps the order in which the request layer supplied the principal
    tags. The order matters: it is part of the cache key and it is the order in
    which tags are forwarded as role-session tags.
    """

    arn: str
    tags: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.arn or not self.arn.strip():
            raise ValueError("Caller identity ARN must be a non-empty string")
        object.__setattr__(self, "tags", MappingProxyType(dict(self.tags)))

    def __hash__(self) -> int:
        return hash((self.arn, tuple(self.tags.items())))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CallerIdentity):
            return NotImplemented
        return self.arn == other.arn and list(self.tags.items()) == list(other.tags.items())

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CallerIdentity":
        """Build an identity from a federated identity payload.

        Accepts ``{"arn": ..., "tags": {...}}``; ``principalTags`` is accepted as
        an alias for ``tags``.
        """

        tags = payload.get("tags")
        if tags is None:
            tags = payload.get("principalTags") or {}
        return cls(arn=str(payload.get("arn") or ""), tags={str(k): str(v) for k, v in tags.items()})

    def session_tags(self) -> list[dict[str, str]]:
        """Return the principal tags in the shape ``sts.assume_role`` expects."""

        return [{"Key": key, "Value": value} for key, value in self.tags.items()]


def role_session_name(identity: CallerIdentity) -> str:
    """Derive an STS role-session name for *identity*.

    The first email-shaped token in the ARN is used when present; otherwise a
    random UUID keeps the session name unique.
    """

    match = SESSION_NAME_PATTERN.search(identity.arn)
    if match:
        return match.group(1)
    return str(uuid.uuid4())


__all__ = ["CallerIdentity", "SESSION_NAME_PATTERN", "role_session_name"]
