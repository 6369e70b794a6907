"""Per-user request gate: IP restriction, access schedule and tenant scope.

Checks run in order and the first failure raises ``AccessDenied``:

1. ``userAccess.ipRestriction`` with ``mode == "single"`` pins the client IP.
   An IP that cannot be resolved does not block.
2. ``userAccess.schedule`` limits weekdays (0=Sunday) and an inclusive
   ``HH:MM`` window. A bound that does not parse disables the time-of-day
   check; that fail-open behavior is a policy decision awaiting sign-off.
3. A request targeting another tenant passes only through an explicit link,
   admin access or a read-only mirror.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from fastapi import Request
from fastapi.responses import JSONResponse

from devkit.config import FleetSettings
from devkit.observability import OnceLogger
from devkit.timezone import resolve_zone
from shared.security.errors import (
    IP_BLOCKED_MESSAGE,
    SCHEDULE_BLOCKED_MESSAGE,
    TENANT_BLOCKED_MESSAGE,
    AccessDenied,
)
from shared.security.principal import UserContext, as_user_context
from shared.security.rbac import is_admin

logger = logging.getLogger(__name__)

_READ_METHODS = frozenset({"GET", "HEAD"})


@dataclass(frozen=True)
class AccessRequest:
    user: UserContext | None
    headers: Mapping[str, str] = field(default_factory=dict)
    peer_address: str | None = None
    method: str = "GET"
    client_id: str | None = None
    mirror_mode: str | None = None
    access_type: str | None = None

    def header(self, name: str) -> str | None:
        value = self.headers.get(name)
        if value is not None:
            return value
        lowered = name.lower()
        for key, candidate in self.headers.items():
            if key.lower() == lowered:
                return candidate
        return None

    @classmethod
    def from_starlette(cls, request: Request) -> AccessRequest:
        state = request.state
        client_id = getattr(state, "client_id", None)
        return cls(
            user=as_user_context(getattr(state, "user", None)),
            headers=request.headers,
            peer_address=request.client.host if request.client else None,
            method=request.method,
            client_id=str(client_id) if client_id is not None else None,
            mirror_mode=getattr(state, "mirror_mode", None),
            access_type=getattr(state, "access_type", None),
        )


def resolve_request_ip(request: AccessRequest) -> str:
    forwarded = request.header("x-forwarded-for")
    if forwarded:
        first = str(forwarded).split(",")[0].strip()
        if first:
            return first
    return (request.peer_address or "").strip()


def parse_clock_minutes(value: Any) -> int | None:
    if not value or not isinstance(value, str):
        return None
    parts = value.split(":")
    if len(parts) < 2:
        return None
    try:
        hours = int(parts[0].strip())
        minutes = int(parts[1].strip())
    except ValueError:
        return None
    return hours * 60 + minutes


def _weekday_set(days: Any) -> set[int]:
    parsed: set[int] = set()
    for day in days:
        if isinstance(day, bool):
            continue
        try:
            parsed.add(int(day))
        except (TypeError, ValueError):
            continue
    return parsed


def is_within_schedule(schedule: Any, now: datetime) -> bool:
    if not isinstance(schedule, Mapping):
        return True
    days = schedule.get("days")
    if isinstance(days, (list, tuple)) and days:
        # datetime.weekday() is Monday=0; schedules use Sunday=0
        if (now.weekday() + 1) % 7 not in _weekday_set(days):
            return False
    start = parse_clock_minutes(schedule.get("start"))
    end = parse_clock_minutes(schedule.get("end"))
    if start is None or end is None:
        return True
    current = now.hour * 60 + now.minute
    return start <= current <= end


class UserAccessGate:
    def __init__(self, zone: ZoneInfo | None = None) -> None:
        self._zone = zone or resolve_zone()
        self._schedule_warnings = OnceLogger(logger, logging.WARNING)

    @classmethod
    def from_settings(cls, settings: FleetSettings) -> UserAccessGate:
        return cls(resolve_zone(settings.ACCESS_TIMEZONE))

    def enforce(self, request: AccessRequest, now: datetime | float | None = None) -> None:
        user = request.user
        if user is None or is_admin(user.role):
            return
        access = user.user_access if isinstance(user.user_access, Mapping) else {}

        self._check_ip(request, access.get("ipRestriction"))
        schedule = access.get("schedule")
        if not is_within_schedule(schedule, self._local_time(now)):
            raise AccessDenied(SCHEDULE_BLOCKED_MESSAGE)
        self._warn_unparsable_schedule(user, schedule)
        self._check_tenant(request, user)

    def _warn_unparsable_schedule(self, user: UserContext, schedule: Any) -> None:
        if not isinstance(schedule, Mapping):
            return
        bounds = (schedule.get("start"), schedule.get("end"))
        if not any(bounds) or all(parse_clock_minutes(bound) is not None for bound in bounds):
            return
        self._schedule_warnings.log(
            (user.client_id, user.id),
            "access_schedule_unparsable",
            component="security",
            user_id=user.id,
            schedule_start=bounds[0],
            schedule_end=bounds[1],
        )

    def _check_ip(self, request: AccessRequest, restriction: Any) -> None:
        if not isinstance(restriction, Mapping):
            return
        if restriction.get("mode") != "single" or not restriction.get("ip"):
            return
        request_ip = resolve_request_ip(request)
        if request_ip and request_ip != str(restriction["ip"]).strip():
            raise AccessDenied(IP_BLOCKED_MESSAGE)

    def _check_tenant(self, request: AccessRequest, user: UserContext) -> None:
        if not request.client_id or not user.client_id or request.client_id == user.client_id:
            return
        access_type = request.access_type
        is_mirror_read = request.mirror_mode == "target" and request.method.upper() in _READ_METHODS
        if access_type == "mirror":
            if is_mirror_read:
                return
            raise AccessDenied(TENANT_BLOCKED_MESSAGE)
        if access_type not in ("linked", "admin"):
            raise AccessDenied(TENANT_BLOCKED_MESSAGE)

    def _local_time(self, now: datetime | float | None) -> datetime:
        if now is None:
            return datetime.now(self._zone)
        if isinstance(now, datetime):
            return now.astimezone(self._zone) if now.tzinfo is not None else now
        return datetime.fromtimestamp(float(now) / 1000.0, self._zone)


def enforce_user_access(
    request: AccessRequest,
    now: datetime | float | None = None,
    zone: ZoneInfo | None = None,
) -> None:
    UserAccessGate(zone).enforce(request, now=now)


async def require_user_access(request: Request) -> None:
    _gate_for(request.scope.get("app")).enforce(AccessRequest.from_starlette(request))


def _gate_for(app: Any) -> UserAccessGate:
    state = getattr(app, "state", None)
    gate = getattr(state, "access_gate", None)
    if gate is None:
        gate = UserAccessGate(getattr(state, "access_zone", None))
        if state is not None:
            state.access_gate = gate
    return gate


async def handle_access_denied(_: Request, exc: AccessDenied) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "data": None, "error": {"code": exc.code, "message": exc.message}},
    )
