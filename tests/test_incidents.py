import pytest

from auth.exceptions import NotFound, PermissionDenied, Unauthenticated
from auth.models import AuditLog
from auth.role_config import Role
from incidents.service import IncidentService


def raise_event(db, caller, zone, type="motion_detected", severity="low"):
    return IncidentService.log_event(
        db, caller.user_id,
        type=type,
        severity=severity,
        description=f"{type} in {zone}",
        zone=zone,
        source_id="cam-1",
        source_type="camera",
    )


def test_log_event_in_assigned_zone(db, make_profile):
    guard, _ = make_profile(Role.BODYGUARD, zones=["North Gate"])
    event = IncidentService.log_event(
        db, guard.user_id,
        type="intrusion_alert",
        severity="high",
        description="Fence sensor tripped",
        zone="North Gate",
        source_id="guard-4",
        source_type="guard",
        lat=40.7,
        lng=-74.0,
        metadata={"sensor": "fence-2"},
    )

    assert event["zone"] == "North Gate"
    assert event["is_resolved"] is False
    assert event["metadata"] == {"sensor": "fence-2"}
    assert db.query(AuditLog).filter_by(action="log_event", resource_id=event["id"]).count() == 1


def test_log_event_outside_assigned_zone_is_denied(db, make_profile):
    guard, _ = make_profile(Role.BODYGUARD, zones=["North Gate"])
    with pytest.raises(PermissionDenied):
        raise_event(db, guard, "Vault")


def test_log_event_requires_create_events(db, make_profile):
    viewer, _ = make_profile(Role.VIEWER, zones=["Lobby"])
    with pytest.raises(PermissionDenied):
        raise_event(db, viewer, "Lobby")


def test_log_event_requires_identity(db):
    with pytest.raises(Unauthenticated):
        IncidentService.log_event(
            db, None, type="emergency", severity="critical", description="x",
            zone="Lobby", source_id="s", source_type="system"
        )


def test_list_is_scoped_to_accessible_zones(db, admin, make_profile):
    raise_event(db, admin, "North Gate")
    raise_event(db, admin, "Vault")
    raise_event(db, admin, "Parking")

    viewer, _ = make_profile(Role.VIEWER, zones=["North Gate", "Parking"])
    zones = {e["zone"] for e in IncidentService.list_events(db, viewer.user_id)}
    assert zones == {"North Gate", "Parking"}

    assert IncidentService.list_events(db, viewer.user_id, zone="Vault") == []
    assert len(IncidentService.list_events(db, admin.user_id)) == 3


def test_list_limit_applies_after_zone_filtering(db, admin, make_profile):
    for _ in range(20):
        raise_event(db, admin, "Vault")
    lobby = raise_event(db, admin, "Lobby")
    for _ in range(5):
        raise_event(db, admin, "Parking")

    guard, _ = make_profile(Role.BODYGUARD, zones=["Lobby"])
    listed = IncidentService.list_events(db, guard.user_id, limit=1)
    assert [e["id"] for e in listed] == [lobby["id"]]


def test_list_without_assigned_zones_is_empty(db, admin, make_profile):
    raise_event(db, admin, "Lobby")
    viewer, _ = make_profile(Role.VIEWER, zones=[])
    assert IncidentService.list_events(db, viewer.user_id) == []


def test_list_is_newest_first(db, admin):
    first = raise_event(db, admin, "Lobby")
    second = raise_event(db, admin, "Lobby")
    listed = IncidentService.list_events(db, admin.user_id, limit=2)
    assert [e["id"] for e in listed] == [second["id"], first["id"]]


def test_list_fails_soft(db, make_user, make_profile):
    assert IncidentService.list_events(db, None) == []
    assert IncidentService.list_events(db, make_user().user_id) == []

    inactive, _ = make_profile(Role.SECURITY_MANAGER, is_active=False)
    assert IncidentService.list_events(db, inactive.user_id) == []


def test_resolve_event(db, admin, make_profile):
    event = raise_event(db, admin, "Lobby")
    operator, _ = make_profile(Role.CCTV_OPERATOR, zones=["Lobby"])

    resolved = IncidentService.resolve_event(db, operator.user_id, event["id"])
    assert resolved["is_resolved"] is True
    assert resolved["resolved_by"] == operator.user_id
    assert resolved["resolved_at"] is not None

    again = IncidentService.resolve_event(db, operator.user_id, event["id"])
    assert again == resolved
    assert db.query(AuditLog).filter_by(action="resolve_event").count() == 1

    assert [e["id"] for e in IncidentService.list_events(db, operator.user_id, resolved=True)] == [event["id"]]
    assert IncidentService.list_events(db, operator.user_id, resolved=False) == []


def test_resolve_event_outside_zone_is_denied(db, admin, make_profile):
    event = raise_event(db, admin, "Vault")
    operator, _ = make_profile(Role.CCTV_OPERATOR, zones=["Lobby"])
    with pytest.raises(PermissionDenied):
        IncidentService.resolve_event(db, operator.user_id, event["id"])


def test_resolve_requires_resolve_events(db, admin, make_profile):
    event = raise_event(db, admin, "Kennels")
    handler, _ = make_profile(Role.DOG_HANDLER, zones=["Kennels"])
    with pytest.raises(PermissionDenied):
        IncidentService.resolve_event(db, handler.user_id, event["id"])


def test_resolve_unknown_event(db, admin):
    with pytest.raises(NotFound):
        IncidentService.resolve_event(db, admin.user_id, "missing")
