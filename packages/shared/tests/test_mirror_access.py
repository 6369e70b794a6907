from types import SimpleNamespace

import pytest

from shared.security.mirror_access import can_view_owner, normalize_tenant_ref, resolve_allowed_owner_ids
from shared.security.principal import UserContext


def _user(**attributes) -> dict:
    return {"id": "u-1", "role": "user", "clientId": "receiver-1", "attributes": attributes}


def test_admin_is_unrestricted() -> None:
    admin = {"role": "admin", "attributes": {"userAccess": {"clientIds": ["x"]}}}
    assert resolve_allowed_owner_ids(admin) is None


def test_missing_user_sees_nothing() -> None:
    assert resolve_allowed_owner_ids(None) == frozenset()


def test_user_without_signals_sees_nothing() -> None:
    assert resolve_allowed_owner_ids(_user()) == frozenset()


@pytest.mark.parametrize(
    "mirror_access",
    [True, "all", " ALL ", {"mode": "all"}, {"access": "All"}, {"scope": "all"}, {"allowAll": True}, {"all": True}],
)
def test_mirror_access_allow_all_signals(mirror_access) -> None:
    assert resolve_allowed_owner_ids(_user(mirrorAccess=mirror_access)) is None


def test_allow_all_dominates_explicit_ids() -> None:
    user = _user(mirrorAccess={"allowAll": True}, userAccess={"clientIds": ["x"]})
    assert resolve_allowed_owner_ids(user) is None


def test_nested_user_access_mirror_allow_all() -> None:
    user = _user(userAccess={"clientIds": ["x"], "mirrorAccess": {"mode": "all"}})
    assert resolve_allowed_owner_ids(user) is None


def test_union_of_ids_from_both_sources() -> None:
    user = _user(
        mirrorAccess={"ownerClientIds": ["owner-1", " owner-2 "], "mode": "selected"},
        userAccess={
            "clientIds": ["owner-3"],
            "tenants": [{"tenantId": "owner-4"}, {"id": "owner-1"}],
            "ownerClientId": 55,
            "mirrorAccess": {"mirrorOwnerIds": ["owner-6"]},
        },
    )
    assert resolve_allowed_owner_ids(user) == frozenset(
        {"owner-1", "owner-2", "owner-3", "owner-4", "55", "owner-6"}
    )


def test_mirror_access_list_of_references() -> None:
    user = _user(mirrorAccess=["owner-1", {"clientId": "owner-2"}, "", None, "  "])
    assert resolve_allowed_owner_ids(user) == frozenset({"owner-1", "owner-2"})


def test_false_flags_do_not_grant_all() -> None:
    user = _user(mirrorAccess={"allowAll": False, "all": "yes", "clientIds": ["a"]})
    assert resolve_allowed_owner_ids(user) == frozenset({"a"})


def test_accepts_user_context_instances() -> None:
    user = UserContext(role="manager", attributes={"userAccess": {"clients": [{"ownerClientId": "o-9"}]}})
    assert resolve_allowed_owner_ids(user) == frozenset({"o-9"})


def test_accepts_attribute_style_users() -> None:
    user = SimpleNamespace(role="user", id=5, clientId="c0", attributes={"mirrorAccess": {"clientIds": ["c1"]}})
    assert resolve_allowed_owner_ids(user) == frozenset({"c1"})


def test_attribute_style_user_without_attributes_sees_nothing() -> None:
    assert resolve_allowed_owner_ids(SimpleNamespace(role="user")) == frozenset()


def test_normalize_tenant_ref() -> None:
    assert normalize_tenant_ref("  abc ") == "abc"
    assert normalize_tenant_ref(12) == "12"
    assert normalize_tenant_ref(12.0) == "12"
    assert normalize_tenant_ref({"clientId": "c", "tenantId": "t"}) == "c"
    assert normalize_tenant_ref({"id": "", "tenantId": "t"}) == "t"
    assert normalize_tenant_ref("") is None
    assert normalize_tenant_ref(True) is None
    assert normalize_tenant_ref({"name": "no id"}) is None


def test_can_view_owner() -> None:
    user = _user(userAccess={"clientIds": ["owner-1"]})
    assert can_view_owner(user, "owner-1")
    assert not can_view_owner(user, "owner-2")
    assert can_view_owner({"role": "admin"}, "anything")
