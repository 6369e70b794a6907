from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class UserContext:
    role: str
    id: str | None = None
    client_id: str | None = None
    attributes: Mapping[str, Any] = field(default_factory=dict)

    @property
    def mirror_access(self) -> Any:
        return self.attributes.get("mirrorAccess")

    @property
    def user_access(self) -> Any:
        return self.attributes.get("userAccess")

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> UserContext:
        attributes = payload.get("attributes")
        return cls(
            role=str(payload.get("role") or ""),
            id=_optional_str(payload.get("id")),
            client_id=_optional_str(payload.get("clientId", payload.get("client_id"))),
            attributes=attributes if isinstance(attributes, Mapping) else {},
        )

    @classmethod
    def from_object(cls, user: Any) -> UserContext:
        """Read an auth-layer user object (ORM row, namespace) by attribute."""
        attributes = getattr(user, "attributes", None)
        client_id = getattr(user, "clientId", None)
        if client_id is None:
            client_id = getattr(user, "client_id", None)
        return cls(
            role=str(getattr(user, "role", None) or ""),
            id=_optional_str(getattr(user, "id", None)),
            client_id=_optional_str(client_id),
            attributes=attributes if isinstance(attributes, Mapping) else {},
        )


def as_user_context(user: Any) -> UserContext | None:
    if user is None:
        return None
    if isinstance(user, UserContext):
        return user
    if isinstance(user, Mapping):
        return UserContext.from_mapping(user)
    return UserContext.from_object(user)


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
