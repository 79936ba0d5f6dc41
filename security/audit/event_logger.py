"""
Immutable audit logging of privileged actions.

Entries are written in the caller's transaction, so an action and its audit
record commit (or roll back) together. There is no update or delete path.

Writes are best-effort with respect to identity: an unresolvable caller gets
no entry and no error.
"""

import json
from typing import List, Optional, Union
from loguru import logger
from sqlalchemy import desc
from sqlalchemy.orm import Session

from auth.models import AuditLog
from auth.role_config import Permission

MAX_LIST_LIMIT = 500


class AuditLogger:
    """Append and review audit entries"""

    @staticmethod
    def record(
        db: Session,
        caller_id: Optional[str],
        action: str,
        resource: str,
        resource_id: Optional[str] = None,
        details: Union[str, dict, None] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[str]:
        """
        Stage an audit entry in the session. Returns its id, or None when the
        caller cannot be resolved. The caller's commit persists it.
        """
        from auth.auth_manager import auth_manager

        user = auth_manager.get_user(db, caller_id)
        if user is None:
            logger.debug(f"[AUDIT] Skipped {action} on {resource}: caller not resolved")
            return None

        if isinstance(details, dict):
            details = json.dumps(details, sort_keys=True, default=str)

        entry = AuditLog(
            user_id=user.user_id,
            action=action,
            resource=resource,
            resource_id=resource_id,
            details=details,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        db.add(entry)
        db.flush()

        logger.info(f"[AUDIT] {action} on {resource}/{resource_id or '-'} by {user.user_id}")
        return entry.audit_id

    @staticmethod
    def log_event(db: Session, caller_id: Optional[str], action: str, resource: str,
                  resource_id: Optional[str] = None, details: Optional[str] = None,
                  ip_address: Optional[str] = None, user_agent: Optional[str] = None) -> Optional[str]:
        """Standalone audit write (own transaction), behind POST /api/audit"""
        audit_id = AuditLogger.record(
            db, caller_id, action, resource,
            resource_id=resource_id, details=details,
            ip_address=ip_address, user_agent=user_agent
        )
        if audit_id is not None:
            db.commit()
        return audit_id

    @staticmethod
    def list_entries(
        db: Session,
        caller_id: Optional[str],
        user_id: Optional[str] = None,
        action: Optional[str] = None,
        resource: Optional[str] = None,
        limit: int = 100,
    ) -> List[dict]:
        """Newest-first audit entries; [] unless the caller holds view_audit_logs"""
        from security.policy.rbac import PermissionChecker

        if not PermissionChecker.check_permission_for_caller(db, caller_id, Permission.VIEW_AUDIT_LOGS):
            logger.warning(f"[AUDIT] {caller_id} denied audit log review")
            return []

        query = db.query(AuditLog)
        if user_id:
            query = query.filter(AuditLog.user_id == user_id)
        if action:
            query = query.filter(AuditLog.action == action)
        if resource:
            query = query.filter(AuditLog.resource == resource)

        limit = max(1, min(limit, MAX_LIST_LIMIT))
        entries = query.order_by(desc(AuditLog.created_at)).limit(limit).all()
        return [entry.to_dict() for entry in entries]
