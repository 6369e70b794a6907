from __future__ import annotations

from typing import Any

ADMIN_ROLE = "admin"


def is_admin(role: Any) -> bool:
    # global admin only; tenant_admin is scoped to its own tenant
    return isinstance(role, str) and role == ADMIN_ROLE
