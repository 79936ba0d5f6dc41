"""
Role-Based Access Control (RBAC) evaluation.

Every check runs against a profile's materialized permission snapshot:
  - inactive (or missing) profiles hold no permissions and match no role
  - zone access is unconditional with `access_all_zones`, otherwise the
    profile's assigned zones decide

Functions here are pure and never raise for a missing profile.
PermissionChecker is the caller-facing facade used by read paths: it resolves
a caller id to a profile and fails closed on anything unexpected.

Access states a caller can be in:
  NoIdentity -> Identity(unauthenticated) -> Identity+NoProfile
  -> Identity+Profile(inactive) -> Identity+Profile(active)
Only the last one can pass a check.
"""

from typing import Iterable, List, Optional
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from auth.role_config import Permission, Role, parse_permission


def _effective_permissions(profile) -> set:
    if profile is None or not profile.is_active:
        return set()
    return set(profile.permissions or [])


def has_permission(profile, permission) -> bool:
    return str(permission) in _effective_permissions(profile)


def has_any_permission(profile, permissions: Iterable) -> bool:
    granted = _effective_permissions(profile)
    return any(str(p) in granted for p in permissions)


def has_all_permissions(profile, permissions: Iterable) -> bool:
    granted = _effective_permissions(profile)
    return all(str(p) in granted for p in permissions)


def can_access_zone(profile, zone: str) -> bool:
    if has_permission(profile, Permission.ACCESS_ALL_ZONES):
        return True
    if profile is None or not profile.is_active:
        return False
    return zone in (profile.assigned_zones or [])


def _active(profile) -> bool:
    return profile is not None and bool(profile.is_active)


def has_role(profile, role) -> bool:
    return _active(profile) and profile.role == str(role)


def has_any_role(profile, roles: Iterable) -> bool:
    return _active(profile) and profile.role in {str(r) for r in roles}


def evaluate_gate(
    profile,
    permission=None,
    permissions: Optional[Iterable] = None,
    require_all: bool = False,
    role=None,
    roles: Optional[Iterable] = None,
    zone: Optional[str] = None,
) -> bool:
    """
    Combined gate over permission, role and zone conditions.

    Every condition that is supplied must hold; a gate with no conditions
    lets everything through.
    """
    if permission is not None and not has_permission(profile, permission):
        return False

    if permissions is not None:
        permissions = list(permissions)
        allowed = (
            has_all_permissions(profile, permissions)
            if require_all
            else has_any_permission(profile, permissions)
        )
        if not allowed:
            return False

    if role is not None and not has_role(profile, role):
        return False

    if roles is not None and not has_any_role(profile, roles):
        return False

    if zone is not None and not can_access_zone(profile, zone):
        return False

    return True


def access_summary(profile) -> dict:
    """Permissions, role and per-role flags as a UI consumes them"""
    role = profile.role if profile is not None else None
    return {
        "role": role,
        "is_active": _active(profile),
        "permissions": sorted(_effective_permissions(profile)),
        "assigned_zones": list(profile.assigned_zones or []) if profile is not None else [],
        "all_zones": has_permission(profile, Permission.ACCESS_ALL_ZONES),
        "is_admin": has_role(profile, Role.ADMIN),
        "is_security_manager": has_role(profile, Role.SECURITY_MANAGER),
        "is_bodyguard": has_role(profile, Role.BODYGUARD),
        "is_dog_handler": has_role(profile, Role.DOG_HANDLER),
        "is_cctv_operator": has_role(profile, Role.CCTV_OPERATOR),
        "is_viewer": has_role(profile, Role.VIEWER),
    }


class PermissionChecker:
    """Fail-closed permission lookups for a caller id"""

    @staticmethod
    def resolve_profile(db: Session, caller_id: Optional[str]):
        """Caller id -> profile, or None when the caller or its profile is unknown"""
        from auth.auth_manager import auth_manager
        from profiles.repository import UserProfileRepository

        user = auth_manager.get_user(db, caller_id)
        if user is None:
            return None
        return UserProfileRepository.get_by_user_id(db, user.user_id)

    @staticmethod
    def check_permission_for_caller(db: Session, caller_id: Optional[str], permission) -> bool:
        """Never raises: unknown permission, unknown caller, no profile or inactive profile all mean False"""
        try:
            permission = parse_permission(permission)
        except ValueError:
            logger.warning(f"[RBAC] Check for unknown permission {permission!r} denied")
            return False

        try:
            profile = PermissionChecker.resolve_profile(db, caller_id)
        except SQLAlchemyError as e:
            logger.error(f"[RBAC] Profile lookup failed for {caller_id}: {e}")
            return False

        allowed = has_permission(profile, permission)
        logger.debug(f"[RBAC] {caller_id} -> {permission.value}: {allowed}")
        return allowed

    @staticmethod
    def get_user_permissions(db: Session, caller_id: Optional[str]) -> List[str]:
        """Effective permissions of the caller ([] when unauthenticated, profile-less or inactive)"""
        try:
            profile = PermissionChecker.resolve_profile(db, caller_id)
        except SQLAlchemyError as e:
            logger.error(f"[RBAC] Profile lookup failed for {caller_id}: {e}")
            return []

        if profile is None or not profile.is_active:
            return []
        return list(profile.permissions or [])
