import json

from auth.models import AuditLog
from auth.role_config import Role
from security.audit.event_logger import AuditLogger


def test_log_event_for_authenticated_caller(db, make_user):
    user = make_user()
    audit_id = AuditLogger.log_event(
        db, user.user_id, "view_camera", "cameras",
        resource_id="cam-1", details="opened live feed",
        ip_address="10.0.0.5", user_agent="pytest"
    )

    entry = db.get(AuditLog, audit_id)
    assert entry.user_id == user.user_id
    assert entry.action == "view_camera"
    assert entry.resource == "cameras"
    assert entry.resource_id == "cam-1"
    assert entry.details == "opened live feed"
    assert entry.ip_address == "10.0.0.5"
    assert entry.created_at is not None


def test_log_event_without_caller_writes_nothing(db):
    assert AuditLogger.log_event(db, None, "view_camera", "cameras") is None
    assert AuditLogger.log_event(db, "ghost", "view_camera", "cameras") is None
    assert db.query(AuditLog).count() == 0


def test_dict_details_are_serialized(db, make_user):
    user = make_user()
    audit_id = AuditLogger.log_event(db, user.user_id, "export", "reports", details={"rows": 3})
    assert json.loads(db.get(AuditLog, audit_id).details) == {"rows": 3}


def test_record_does_not_commit(db, make_user):
    user = make_user()
    AuditLogger.record(db, user.user_id, "staged", "reports")
    db.rollback()
    assert db.query(AuditLog).filter_by(action="staged").count() == 0


def test_list_entries_requires_view_audit_logs(db, make_profile):
    viewer, _ = make_profile(Role.VIEWER)
    AuditLogger.log_event(db, viewer.user_id, "view_dashboard", "dashboard")

    assert AuditLogger.list_entries(db, viewer.user_id) == []
    assert AuditLogger.list_entries(db, None) == []


def test_list_entries_filters_and_limits(db, admin, make_user):
    other = make_user()
    for i in range(3):
        AuditLogger.log_event(db, other.user_id, "view_camera", "cameras", resource_id=f"cam-{i}")
    AuditLogger.log_event(db, admin.user_id, "export", "reports")

    by_user = AuditLogger.list_entries(db, admin.user_id, user_id=other.user_id)
    assert len(by_user) == 3
    assert {e["user_id"] for e in by_user} == {other.user_id}

    exports = AuditLogger.list_entries(db, admin.user_id, action="export")
    assert [e["resource"] for e in exports] == ["reports"]

    assert len(AuditLogger.list_entries(db, admin.user_id, resource="cameras", limit=2)) == 2
