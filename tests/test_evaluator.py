from types import SimpleNamespace

import pytest

from auth.role_config import Permission, Role, permission_values_for_role
from security.policy.rbac import (
    PermissionChecker,
    access_summary,
    can_access_zone,
    evaluate_gate,
    has_all_permissions,
    has_any_permission,
    has_permission,
    has_role,
)


def profile(role=Role.VIEWER, zones=("Main Building",), is_active=True):
    return SimpleNamespace(
        role=Role(role).value,
        permissions=permission_values_for_role(role),
        assigned_zones=list(zones),
        is_active=is_active,
    )


def test_missing_profile_holds_nothing():
    assert has_permission(None, Permission.VIEW_DASHBOARD) is False
    assert can_access_zone(None, "Main Building") is False
    assert evaluate_gate(None, permission=Permission.VIEW_DASHBOARD) is False
    assert has_role(None, Role.VIEWER) is False


@pytest.mark.parametrize("permission", list(Permission))
def test_inactive_profile_holds_no_permission(permission):
    p = profile(Role.ADMIN, is_active=False)
    assert has_permission(p, permission) is False
    assert has_permission(p, permission.value) is False


def test_inactive_profile_matches_no_role_or_zone():
    p = profile(Role.ADMIN, is_active=False)
    assert can_access_zone(p, "Anywhere") is False
    assert has_role(p, Role.ADMIN) is False
    assert evaluate_gate(p, role=Role.ADMIN) is False
    assert evaluate_gate(p, roles=[Role.ADMIN, Role.VIEWER]) is False

    summary = access_summary(p)
    assert summary["role"] == "admin"
    assert summary["permissions"] == []
    assert summary["is_admin"] is False
    assert summary["all_zones"] is False


def test_any_and_all():
    p = profile(Role.BODYGUARD)
    assert has_any_permission(p, [Permission.MANAGE_USERS, Permission.VIEW_CAMERAS])
    assert not has_all_permissions(p, [Permission.MANAGE_USERS, Permission.VIEW_CAMERAS])
    assert has_all_permissions(p, ["view_cameras", "resolve_events"])


@pytest.mark.parametrize("zone,expected", [
    ("North Gate", True),
    ("Parking", True),
    ("Vault", False),
])
def test_zone_access_follows_assignment(zone, expected):
    p = profile(Role.BODYGUARD, zones=["North Gate", "Parking"])
    assert can_access_zone(p, zone) is expected


def test_all_zones_permission_overrides_assignment():
    p = profile(Role.SECURITY_MANAGER, zones=[])
    assert can_access_zone(p, "Vault") is True


def test_gate_combines_conditions():
    p = profile(Role.CCTV_OPERATOR, zones=["Lobby"])
    assert evaluate_gate(p) is True
    assert evaluate_gate(p, permission=Permission.MANAGE_CAMERAS, zone="Lobby") is True
    assert evaluate_gate(p, permission=Permission.MANAGE_CAMERAS, zone="Vault") is False
    assert evaluate_gate(p, roles=[Role.ADMIN, Role.CCTV_OPERATOR]) is True
    assert evaluate_gate(p, role=Role.ADMIN) is False
    assert evaluate_gate(
        p, permissions=[Permission.MANAGE_CAMERAS, Permission.MANAGE_USERS], require_all=True
    ) is False
    assert evaluate_gate(
        p, permissions=[Permission.MANAGE_CAMERAS, Permission.MANAGE_USERS]
    ) is True


def test_access_summary_flags():
    summary = access_summary(profile(Role.DOG_HANDLER, zones=["Kennels"]))
    assert summary["role"] == "dog_handler"
    assert summary["is_dog_handler"] is True
    assert summary["is_admin"] is False
    assert summary["all_zones"] is False
    assert summary["assigned_zones"] == ["Kennels"]
    assert "manage_guard_dogs" in summary["permissions"]

    empty = access_summary(None)
    assert empty["role"] is None
    assert empty["permissions"] == []
    assert empty["is_active"] is False


# ==================== CALLER FACADE ====================

def test_checker_for_unauthenticated_caller(db):
    assert PermissionChecker.check_permission_for_caller(db, None, "view_dashboard") is False
    assert PermissionChecker.check_permission_for_caller(db, "ghost", "view_dashboard") is False
    assert PermissionChecker.get_user_permissions(db, None) == []


def test_checker_for_user_without_profile(db, make_user):
    user = make_user()
    assert PermissionChecker.check_permission_for_caller(db, user.user_id, "view_dashboard") is False
    assert PermissionChecker.get_user_permissions(db, user.user_id) == []


def test_checker_with_profile(db, make_profile):
    user, _ = make_profile(Role.VIEWER)
    assert PermissionChecker.check_permission_for_caller(db, user.user_id, "view_dashboard") is True
    assert PermissionChecker.check_permission_for_caller(db, user.user_id, Permission.MANAGE_USERS) is False
    assert PermissionChecker.get_user_permissions(db, user.user_id) == permission_values_for_role(Role.VIEWER)


def test_checker_unknown_permission_is_false(db, admin):
    assert PermissionChecker.check_permission_for_caller(db, admin.user_id, "launch_rockets") is False


def test_checker_inactive_profile(db, make_profile):
    user, _ = make_profile(Role.ADMIN, is_active=False)
    assert PermissionChecker.check_permission_for_caller(db, user.user_id, "manage_users") is False
    assert PermissionChecker.get_user_permissions(db, user.user_id) == []
