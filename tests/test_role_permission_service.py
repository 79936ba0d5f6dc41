import pytest

from auth.exceptions import PermissionDenied, Unauthenticated
from auth.models import AuditLog, RolePermission, UserProfile
from auth.role_config import Role, get_role_description, permission_values_for_role
from profiles.service import RolePermissionService


def test_reinitialize_mirrors_the_catalog(db):
    RolePermissionService.reinitialize(db)

    records = {r["role"]: r for r in RolePermissionService.list_records(db)}
    assert set(records) == {role.value for role in Role}
    for role in Role:
        assert records[role.value]["permissions"] == permission_values_for_role(role)
        assert records[role.value]["description"] == get_role_description(role)


def test_reinitialize_twice_keeps_one_record_per_role(db):
    RolePermissionService.reinitialize(db)
    RolePermissionService.reinitialize(db)

    assert db.query(RolePermission).count() == len(Role)
    roles = [r.role for r in db.query(RolePermission).all()]
    assert len(roles) == len(set(roles))


def test_list_records_before_initialize_is_empty(db):
    assert RolePermissionService.list_records(db) == []


def test_gated_initialize_for_admin(db, admin):
    result = RolePermissionService.initialize_role_permissions(db, admin.user_id)

    assert result == {"success": True, "message": "Role permissions initialized"}
    assert db.query(RolePermission).count() == len(Role)
    assert db.query(AuditLog).filter_by(action="initialize_role_permissions").count() == 1


def test_gated_initialize_denied(db, make_profile):
    manager, _ = make_profile(Role.SECURITY_MANAGER)
    with pytest.raises(PermissionDenied):
        RolePermissionService.initialize_role_permissions(db, manager.user_id)
    with pytest.raises(Unauthenticated):
        RolePermissionService.initialize_role_permissions(db, None)
    assert db.query(RolePermission).count() == 0


def test_resync_repairs_stale_snapshots(db, admin, make_profile):
    _, stale = make_profile(Role.BODYGUARD)
    _, fresh = make_profile(Role.VIEWER)
    stale.permissions = ["view_dashboard"]
    db.commit()

    updated = RolePermissionService.resync_profiles(db, admin.user_id)

    assert updated == 1
    db.refresh(stale)
    db.refresh(fresh)
    assert stale.permissions == permission_values_for_role(Role.BODYGUARD)
    assert fresh.permissions == permission_values_for_role(Role.VIEWER)
    assert db.query(AuditLog).filter_by(action="resync_profiles").count() == 1


def test_resync_when_nothing_drifted(db, admin):
    assert RolePermissionService.resync_profiles(db, admin.user_id) == 0


def test_resync_requires_manage_roles(db, make_profile):
    viewer, _ = make_profile(Role.VIEWER)
    with pytest.raises(PermissionDenied):
        RolePermissionService.resync_profiles(db, viewer.user_id)
    assert db.query(UserProfile).count() == 1
