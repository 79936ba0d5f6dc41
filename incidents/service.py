"""
Security event feed, scoped to the zones a caller may see.

Raising and resolving an event require the matching permission plus access to
the event's zone, and fail loud. Listing fails soft and silently drops events
in zones the caller cannot access.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from auth.auth_manager import auth_manager
from auth.exceptions import NotFound, PermissionDenied, Unauthenticated
from auth.models import SecurityEvent
from auth.role_config import Permission
from profiles.repository import UserProfileRepository
from security.audit.event_logger import AuditLogger
from security.policy.rbac import can_access_zone, evaluate_gate, has_permission

DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 500


class SecurityEventRepository:

    @staticmethod
    def get_by_id(db: Session, event_id: str) -> Optional[SecurityEvent]:
        return db.query(SecurityEvent).filter(SecurityEvent.id == event_id).first()

    @staticmethod
    def next_sequence(db: Session) -> int:
        current = db.query(func.max(SecurityEvent.sequence)).scalar()
        return (current or 0) + 1

    @staticmethod
    def create(db: Session, **fields) -> SecurityEvent:
        event = SecurityEvent(sequence=SecurityEventRepository.next_sequence(db), **fields)
        db.add(event)
        db.flush()
        return event

    @staticmethod
    def list_recent(db: Session, resolved: Optional[bool] = None, zone: Optional[str] = None,
                    zones: Optional[List[str]] = None,
                    limit: int = DEFAULT_LIST_LIMIT) -> List[SecurityEvent]:
        """Newest first. `zones=None` means every zone; an empty list matches nothing."""
        query = db.query(SecurityEvent)
        if zones is not None:
            query = query.filter(SecurityEvent.zone.in_(zones))
        if resolved is not None:
            query = query.filter(SecurityEvent.is_resolved == resolved)
        if zone:
            query = query.filter(SecurityEvent.zone == zone)
        return (
            query.order_by(desc(SecurityEvent.created_at), desc(SecurityEvent.sequence))
            .limit(limit)
            .all()
        )


class IncidentService:

    @staticmethod
    def _caller_profile(db: Session, caller_id: Optional[str]):
        user = auth_manager.get_user(db, caller_id)
        if user is None:
            logger.warning(f"[EVENTS] Unauthenticated event write (caller={caller_id})")
            raise Unauthenticated()
        return user, UserProfileRepository.get_by_user_id(db, user.user_id)

    @staticmethod
    def log_event(
        db: Session,
        caller_id: Optional[str],
        type: str,
        severity: str,
        description: str,
        zone: str,
        source_id: str,
        source_type: str,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
        metadata: Optional[Dict[str, Any]] = None,
        ip_address: str = None,
        user_agent: str = None,
    ) -> dict:
        """
        Raise a security event in `zone`. Requires create_events and access
        to the zone.
        """
        user, profile = IncidentService._caller_profile(db, caller_id)
        if not has_permission(profile, Permission.CREATE_EVENTS):
            logger.warning(f"[EVENTS] {user.user_id} denied create_events")
            raise PermissionDenied(permission=Permission.CREATE_EVENTS.value)
        if not can_access_zone(profile, zone):
            logger.warning(f"[EVENTS] {user.user_id} denied zone {zone!r}")
            raise PermissionDenied(f"No access to zone '{zone}'")

        try:
            event = SecurityEventRepository.create(
                db,
                type=type,
                severity=severity,
                description=description,
                zone=zone,
                source_id=source_id,
                source_type=source_type,
                lat=lat,
                lng=lng,
                custom_metadata=dict(metadata or {}),
            )
            AuditLogger.record(
                db, user.user_id, "log_event", "security_events",
                resource_id=event.id,
                details={"type": type, "severity": severity, "zone": zone},
                ip_address=ip_address, user_agent=user_agent
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"[EVENTS] {severity} {type} in {zone} raised by {user.user_id} ({event.id})")
        return event.to_dict()

    @staticmethod
    def list_events(
        db: Session,
        caller_id: Optional[str],
        resolved: Optional[bool] = None,
        zone: Optional[str] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> List[dict]:
        """Newest-first events in zones the caller can access; [] without view_all_events"""
        user = auth_manager.get_user(db, caller_id)
        if user is None:
            return []
        profile = UserProfileRepository.get_by_user_id(db, user.user_id)
        if not has_permission(profile, Permission.VIEW_ALL_EVENTS):
            logger.warning(f"[EVENTS] {user.user_id} denied view_all_events")
            return []
        if zone and not can_access_zone(profile, zone):
            return []

        zones = None
        if not has_permission(profile, Permission.ACCESS_ALL_ZONES):
            zones = list(profile.assigned_zones or [])
            if not zones:
                return []

        limit = max(1, min(limit, MAX_LIST_LIMIT))
        events = SecurityEventRepository.list_recent(
            db, resolved=resolved, zone=zone, zones=zones, limit=limit
        )
        return [event.to_dict() for event in events]

    @staticmethod
    def resolve_event(db: Session, caller_id: Optional[str], event_id: str,
                      ip_address: str = None, user_agent: str = None) -> dict:
        """
        Mark an event resolved. Requires resolve_events and access to the
        event's zone. Resolving an already resolved event returns it unchanged.
        """
        user, profile = IncidentService._caller_profile(db, caller_id)
        if not has_permission(profile, Permission.RESOLVE_EVENTS):
            logger.warning(f"[EVENTS] {user.user_id} denied resolve_events")
            raise PermissionDenied(permission=Permission.RESOLVE_EVENTS.value)

        event = SecurityEventRepository.get_by_id(db, event_id)
        if event is None:
            raise NotFound(f"Event {event_id} not found")
        if not evaluate_gate(profile, permission=Permission.RESOLVE_EVENTS, zone=event.zone):
            logger.warning(f"[EVENTS] {user.user_id} denied zone {event.zone!r}")
            raise PermissionDenied(f"No access to zone '{event.zone}'")

        if event.is_resolved:
            return event.to_dict()

        try:
            event.is_resolved = True
            event.resolved_by = user.user_id
            event.resolved_at = datetime.utcnow()
            db.flush()
            AuditLogger.record(
                db, user.user_id, "resolve_event", "security_events",
                resource_id=event.id,
                ip_address=ip_address, user_agent=user_agent
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"[EVENTS] Event {event.id} resolved by {user.user_id}")
        return event.to_dict()
