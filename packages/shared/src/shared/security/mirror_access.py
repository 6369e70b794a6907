"""Tenant visibility for users reading other tenants' fleets through mirrors.

A user's ``attributes.mirrorAccess`` and ``attributes.userAccess`` may grant
access to every owner tenant or list specific ones. ``None`` means
unrestricted; an empty set means no owner tenant is visible.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from shared.security.principal import as_user_context
from shared.security.rbac import is_admin

TENANT_ID_KEYS = (
    "ownerClientIds",
    "mirrorOwnerIds",
    "clientIds",
    "clients",
    "tenantIds",
    "tenants",
    "ownerClientId",
)
_REFERENCE_ID_FIELDS = ("id", "clientId", "ownerClientId", "tenantId")
_MODE_FIELDS = ("mode", "access", "scope")


def normalize_tenant_ref(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, (str, int, float)):
        text = str(value).strip()
        return text or None
    for name in _REFERENCE_ID_FIELDS:
        candidate = value.get(name) if isinstance(value, Mapping) else getattr(value, name, None)
        if candidate:
            text = str(candidate).strip()
            return text or None
    return None


def _collect(source: Any, target: set[str]) -> None:
    if not source:
        return
    values = source if isinstance(source, (list, tuple, set, frozenset)) else (source,)
    for value in values:
        normalized = normalize_tenant_ref(value)
        if normalized:
            target.add(normalized)


def _collect_from_mapping(source: Mapping[str, Any], target: set[str]) -> None:
    for key in TENANT_ID_KEYS:
        _collect(source.get(key), target)


def _access_mode(source: Mapping[str, Any]) -> str | None:
    for name in _MODE_FIELDS:
        mode = source.get(name)
        if mode:
            return str(mode).strip().lower()
    return None


def _grants_all(source: Any) -> bool:
    if source is True:
        return True
    if isinstance(source, str):
        return source.strip().lower() == "all"
    if isinstance(source, Mapping):
        if _access_mode(source) == "all":
            return True
        return source.get("allowAll") is True or source.get("all") is True
    return False


def resolve_allowed_owner_ids(user: Any) -> frozenset[str] | None:
    context = as_user_context(user)
    if context is None:
        return frozenset()
    if is_admin(context.role):
        return None

    ids: set[str] = set()
    allow_all = False

    mirror_access = context.mirror_access
    if _grants_all(mirror_access):
        allow_all = True
    if isinstance(mirror_access, Mapping):
        _collect_from_mapping(mirror_access, ids)
    elif isinstance(mirror_access, (list, tuple)):
        _collect(mirror_access, ids)

    user_access = context.user_access
    if isinstance(user_access, Mapping):
        _collect_from_mapping(user_access, ids)
        nested = user_access.get("mirrorAccess")
        if _grants_all(nested):
            allow_all = True
        if isinstance(nested, Mapping):
            _collect_from_mapping(nested, ids)
        elif isinstance(nested, (list, tuple)):
            _collect(nested, ids)

    if allow_all:
        return None
    return frozenset(ids)


def can_view_owner(user: Any, owner_client_id: Any) -> bool:
    allowed = resolve_allowed_owner_ids(user)
    if allowed is None:
        return True
    owner = normalize_tenant_ref(owner_client_id)
    return owner is not None and owner in allowed
