"""
SQLAlchemy models for users, authorization profiles and the audit trail.

Tables:
- users: identities known to the auth collaborator
- user_profiles: one authorization profile per user (role + materialized permissions)
- role_permissions: persisted mirror of the role catalog
- admin_bootstrap: singleton claim row for the first-admin bootstrap
- audit_logs: append-only record of privileged actions
- security_events: zone-scoped security event feed
"""

from sqlalchemy import (
    CheckConstraint, Column, String, Integer, Boolean, DateTime, Text, Float,
    ForeignKey, Index, JSON, desc
)
from sqlalchemy.orm import declarative_base, relationship, validates
from datetime import datetime
import uuid

from auth.role_config import Role, parse_role, parse_permission

Base = declarative_base()

_ROLE_VALUES = ", ".join(f"'{role.value}'" for role in Role)

EVENT_TYPES = (
    "motion_detected",
    "intrusion_alert",
    "face_recognized",
    "patrol_completed",
    "emergency",
    "system_alert",
)
EVENT_SEVERITIES = ("low", "medium", "high", "critical")
EVENT_SOURCE_TYPES = ("camera", "dog", "guard", "system")


def _new_id() -> str:
    return str(uuid.uuid4())


def _iso(value):
    return value.isoformat() if value else None


class User(Base):
    """User accounts resolved from verified tokens"""

    __tablename__ = "users"

    user_id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(255), unique=True, nullable=True, index=True)
    name = Column(String(255))
    created_at = Column(DateTime, default=datetime.utcnow)

    profile = relationship("UserProfile", back_populates="user", uselist=False)

    def __repr__(self):
        return f"<User(user_id={self.user_id}, email='{self.email}')>"

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "email": self.email,
            "name": self.name,
            "created_at": _iso(self.created_at),
        }


class UserProfile(Base):
    """
    Authorization profile for a single user.

    `permissions` is a snapshot of the role's catalog entry taken at the last
    role assignment. It is only ever written together with `role`.
    """

    __tablename__ = "user_profiles"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(
        String(36),
        ForeignKey("users.user_id"),
        unique=True,
        nullable=False,
        doc="Owner of the profile (exactly one profile per user)"
    )
    role = Column(String(32), nullable=False, index=True)
    permissions = Column(JSON, nullable=False, default=list)
    department = Column(String(255), nullable=False)
    employee_id = Column(String(64), nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login = Column(DateTime, nullable=True)
    assigned_zones = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="profile")

    __table_args__ = (
        CheckConstraint(f"role IN ({_ROLE_VALUES})", name="ck_user_profiles_role"),
    )

    @validates("role")
    def _validate_role(self, key, value):
        return parse_role(value).value

    @validates("permissions")
    def _validate_permissions(self, key, value):
        return [parse_permission(p).value for p in (value or [])]

    @validates("assigned_zones")
    def _validate_zones(self, key, value):
        return [str(zone) for zone in (value or [])]

    def __repr__(self):
        return f"<UserProfile(id={self.id}, user_id={self.user_id}, role='{self.role}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "role": self.role,
            "permissions": list(self.permissions or []),
            "department": self.department,
            "employee_id": self.employee_id,
            "is_active": self.is_active,
            "last_login": _iso(self.last_login),
            "assigned_zones": list(self.assigned_zones or []),
        }


class RolePermission(Base):
    """Persisted mirror of one catalog role (rebuilt by reinitialize)"""

    __tablename__ = "role_permissions"

    id = Column(String(36), primary_key=True, default=_new_id)
    role = Column(String(32), unique=True, nullable=False, index=True)
    permissions = Column(JSON, nullable=False, default=list)
    description = Column(String(255), nullable=False, default="")
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint(f"role IN ({_ROLE_VALUES})", name="ck_role_permissions_role"),
    )

    @validates("role")
    def _validate_role(self, key, value):
        return parse_role(value).value

    def to_dict(self):
        return {
            "id": self.id,
            "role": self.role,
            "permissions": list(self.permissions or []),
            "description": self.description,
        }


class AdminBootstrap(Base):
    """
    Singleton claim for the first-admin bootstrap.

    The primary key is fixed, so at most one caller can ever insert the row;
    the loser of a concurrent bootstrap gets an IntegrityError and falls back
    to the default role.
    """

    __tablename__ = "admin_bootstrap"

    SLOT = "first_admin"

    slot = Column(String(32), primary_key=True, default=SLOT)
    user_id = Column(String(36), ForeignKey("users.user_id"), nullable=False)
    claimed_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class AuditLog(Base):
    """Append-only audit log of privileged actions"""

    __tablename__ = "audit_logs"

    audit_id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.user_id"), nullable=False, index=True)
    action = Column(String(100), nullable=False, index=True)
    resource = Column(String(100), nullable=False, index=True)
    resource_id = Column(String(100), nullable=True)
    details = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)  # IPv4 or IPv6
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    __table_args__ = (
        Index("idx_audit_user_time", user_id, desc(created_at)),
    )

    def to_dict(self):
        return {
            "id": self.audit_id,
            "user_id": self.user_id,
            "action": self.action,
            "resource": self.resource,
            "resource_id": self.resource_id,
            "details": self.details,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "created_at": _iso(self.created_at),
        }


class SecurityEvent(Base):
    """Security event raised by a camera, dog, guard or the system, scoped to a zone"""

    __tablename__ = "security_events"

    id = Column(String(36), primary_key=True, default=_new_id)
    type = Column(String(32), nullable=False, index=True)
    severity = Column(String(16), nullable=False, index=True)
    description = Column(Text, nullable=False)
    zone = Column(String(255), nullable=False, index=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    source_id = Column(String(100), nullable=False)
    source_type = Column(String(16), nullable=False)
    is_resolved = Column(Boolean, nullable=False, default=False, index=True)
    resolved_by = Column(String(36), nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    custom_metadata = Column(JSON, nullable=True, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    # Insertion counter; breaks created_at ties when ordering newest first
    sequence = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint(
            "type IN (" + ", ".join(f"'{t}'" for t in EVENT_TYPES) + ")",
            name="ck_security_events_type"
        ),
        CheckConstraint(
            "severity IN (" + ", ".join(f"'{s}'" for s in EVENT_SEVERITIES) + ")",
            name="ck_security_events_severity"
        ),
        CheckConstraint(
            "source_type IN (" + ", ".join(f"'{s}'" for s in EVENT_SOURCE_TYPES) + ")",
            name="ck_security_events_source_type"
        ),
        Index("idx_events_zone_time", zone, desc(created_at)),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "type": self.type,
            "severity": self.severity,
            "description": self.description,
            "zone": self.zone,
            "lat": self.lat,
            "lng": self.lng,
            "source_id": self.source_id,
            "source_type": self.source_type,
            "is_resolved": self.is_resolved,
            "resolved_by": self.resolved_by,
            "resolved_at": _iso(self.resolved_at),
            "metadata": self.custom_metadata or {},
            "created_at": _iso(self.created_at),
        }
