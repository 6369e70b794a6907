from shared.security.errors import (
    IP_BLOCKED_MESSAGE,
    SCHEDULE_BLOCKED_MESSAGE,
    TENANT_BLOCKED_MESSAGE,
    AccessDenied,
)
from shared.security.mirror_access import (
    can_view_owner,
    normalize_tenant_ref,
    resolve_allowed_owner_ids,
)
from shared.security.principal import UserContext, as_user_context
from shared.security.rbac import ADMIN_ROLE, is_admin
from shared.security.user_access import (
    AccessRequest,
    UserAccessGate,
    enforce_user_access,
    handle_access_denied,
    require_user_access,
    resolve_request_ip,
)

__all__ = [
    "ADMIN_ROLE",
    "AccessDenied",
    "AccessRequest",
    "IP_BLOCKED_MESSAGE",
    "SCHEDULE_BLOCKED_MESSAGE",
    "TENANT_BLOCKED_MESSAGE",
    "UserAccessGate",
    "UserContext",
    "as_user_context",
    "can_view_owner",
    "enforce_user_access",
    "handle_access_denied",
    "is_admin",
    "normalize_tenant_ref",
    "require_user_access",
    "resolve_allowed_owner_ids",
    "resolve_request_ip",
]
