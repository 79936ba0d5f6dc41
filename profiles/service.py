"""
Business logic for profiles and role permissions.

The service layer sits between API endpoints and repositories.
It handles:
- Resolving the caller and enforcing permissions
- Materializing role permissions into profiles
- Writing audit entries for privileged mutations
- Committing exactly once per operation

Reads fail soft (None / [] / False). Writes fail loud with
Unauthenticated, PermissionDenied, AlreadyExists or NotFound.
"""

import threading
from datetime import datetime
from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from auth.auth_manager import auth_manager
from auth.exceptions import AlreadyExists, NotFound, PermissionDenied, Unauthenticated
from auth.models import User, UserProfile
from auth.role_config import (
    BOOTSTRAP_DEPARTMENT,
    BOOTSTRAP_ZONES,
    DEFAULT_ROLE,
    Permission,
    Role,
    get_role_descriptions,
    parse_role,
    permission_values_for_role,
)
from profiles.repository import (
    AdminBootstrapRepository,
    RolePermissionRepository,
    UserProfileRepository,
    UserRepository,
)
from security.audit.event_logger import AuditLogger
from security.policy.rbac import has_permission

# reinitialize() is exclusive with respect to itself
_reinitialize_lock = threading.Lock()
# first-admin bootstrap check-then-insert, within one process
_bootstrap_lock = threading.Lock()

UPDATABLE_FIELDS = {"role", "department", "employee_id", "assigned_zones", "is_active"}


def _require_caller(db: Session, caller_id: Optional[str]) -> User:
    user = auth_manager.get_user(db, caller_id)
    if user is None:
        logger.warning(f"[PROFILE] Unauthenticated write attempt (caller={caller_id})")
        raise Unauthenticated()
    return user


def _require_permission(db: Session, user: User, permission: Permission) -> UserProfile:
    profile = UserProfileRepository.get_by_user_id(db, user.user_id)
    if not has_permission(profile, permission):
        logger.warning(f"[PROFILE] User {user.user_id} denied permission: {permission.value}")
        raise PermissionDenied(permission=permission.value)
    return profile


def _holds(db: Session, user: User, permission: Permission) -> bool:
    return has_permission(UserProfileRepository.get_by_user_id(db, user.user_id), permission)


def _zone_list(value) -> List[str]:
    """A zone list from any iterable of names; a bare string is rejected"""
    if isinstance(value, (str, bytes)):
        raise ValueError(f"assigned_zones must be a list of zone names, not {value!r}")
    return list(value)


def _user_with_profile(user: User, profile: Optional[UserProfile]) -> dict:
    return {
        "user": user.to_dict(),
        "profile": profile.to_dict() if profile is not None else None,
    }


class RolePermissionService:
    """
    Persisted mirror of the role catalog.
    """

    @staticmethod
    def reinitialize(db: Session) -> List[dict]:
        """
        Replace every role_permissions record with a fresh copy of the catalog.

        Delete and insert share one transaction, so readers see either the old
        or the new set. Calls are serialized within the process.
        """
        descriptions = get_role_descriptions()
        records = [
            {
                "role": role.value,
                "permissions": permission_values_for_role(role),
                "description": descriptions[role],
            }
            for role in Role
        ]

        with _reinitialize_lock:
            try:
                created = RolePermissionRepository.replace_all(db, records)
                db.commit()
            except Exception:
                db.rollback()
                raise

        logger.info(f"[ROLES] Role permissions initialized ({len(created)} roles)")
        return [row.to_dict() for row in created]

    @staticmethod
    def initialize_role_permissions(db: Session, caller_id: Optional[str],
                                    ip_address: str = None, user_agent: str = None) -> dict:
        """Gated reinitialize: requires manage_roles"""
        user = _require_caller(db, caller_id)
        _require_permission(db, user, Permission.MANAGE_ROLES)

        AuditLogger.record(
            db, user.user_id, "initialize_role_permissions", "role_permissions",
            ip_address=ip_address, user_agent=user_agent
        )
        RolePermissionService.reinitialize(db)
        return {"success": True, "message": "Role permissions initialized"}

    @staticmethod
    def list_records(db: Session) -> List[dict]:
        """All mirror records, order unspecified"""
        return [row.to_dict() for row in RolePermissionRepository.list_all(db)]

    @staticmethod
    def resync_profiles(db: Session, caller_id: Optional[str],
                        ip_address: str = None, user_agent: str = None) -> int:
        """
        Recompute the permission snapshot of every profile that drifted from
        the current catalog. Requires manage_roles. Returns the number changed.
        """
        user = _require_caller(db, caller_id)
        _require_permission(db, user, Permission.MANAGE_ROLES)

        updated = 0
        try:
            for profile in UserProfileRepository.list_all(db):
                expected = permission_values_for_role(profile.role)
                if list(profile.permissions or []) != expected:
                    UserProfileRepository.patch(db, profile, {"permissions": expected})
                    updated += 1

            AuditLogger.record(
                db, user.user_id, "resync_profiles", "user_profiles",
                details={"updated": updated},
                ip_address=ip_address, user_agent=user_agent
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"[ROLES] Resynced {updated} profiles to the current catalog")
        return updated


class UserProfileService:
    """
    Business logic for profile lifecycle operations.
    """

    @staticmethod
    def get_current_profile(db: Session, caller_id: Optional[str]) -> Optional[dict]:
        """
        {user, profile} for the caller, None when unauthenticated.
        profile is None when the caller has no profile yet.
        """
        user = auth_manager.get_user(db, caller_id)
        if user is None:
            return None
        profile = UserProfileRepository.get_by_user_id(db, user.user_id)
        return _user_with_profile(user, profile)

    @staticmethod
    def get_caller_profile(db: Session, caller_id: Optional[str]) -> Optional[UserProfile]:
        user = auth_manager.get_user(db, caller_id)
        if user is None:
            return None
        return UserProfileRepository.get_by_user_id(db, user.user_id)

    @staticmethod
    def create_initial_profile(db: Session, caller_id: Optional[str]) -> dict:
        """
        Self-service bootstrap. Returns the caller's existing profile unchanged,
        otherwise creates one: admin if no admin profile exists and the
        first-admin claim is still free, viewer otherwise.
        """
        user = _require_caller(db, caller_id)

        with _bootstrap_lock:
            existing = UserProfileRepository.get_by_user_id(db, user.user_id)
            if existing is not None:
                return existing.to_dict()

            claim_admin = (
                UserProfileRepository.count_by_role(db, Role.ADMIN.value) == 0
                and not AdminBootstrapRepository.is_claimed(db)
            )
            role = Role.ADMIN if claim_admin else DEFAULT_ROLE

            try:
                if claim_admin:
                    AdminBootstrapRepository.claim(db, user.user_id)
                profile = UserProfileService._stage_bootstrap_profile(db, user, role)
                db.commit()
            except IntegrityError:
                # Another process claimed the admin slot or created this user's profile first
                db.rollback()
                existing = UserProfileRepository.get_by_user_id(db, user.user_id)
                if existing is not None:
                    return existing.to_dict()
                role = DEFAULT_ROLE
                profile = UserProfileService._stage_bootstrap_profile(db, user, role)
                db.commit()

        logger.info(f"[PROFILE] Bootstrap profile created for {user.user_id} with role {role.value}")
        return profile.to_dict()

    @staticmethod
    def _stage_bootstrap_profile(db: Session, user: User, role: Role) -> UserProfile:
        profile = UserProfileRepository.create(
            db,
            user_id=user.user_id,
            role=role.value,
            permissions=permission_values_for_role(role),
            department=BOOTSTRAP_DEPARTMENT,
            assigned_zones=list(BOOTSTRAP_ZONES),
        )
        AuditLogger.record(
            db, user.user_id, "create_initial_profile", "user_profiles",
            resource_id=profile.id, details={"role": role.value}
        )
        return profile

    @staticmethod
    def create_profile(
        db: Session,
        caller_id: Optional[str],
        target_user_id: str,
        role,
        department: str,
        assigned_zones: List[str],
        employee_id: Optional[str] = None,
        ip_address: str = None,
        user_agent: str = None,
    ) -> str:
        """
        Create a profile for another user. Requires manage_users.

        Returns:
            The new profile id

        Raises:
            Unauthenticated, PermissionDenied, AlreadyExists, NotFound (unknown target user)
        """
        user = _require_caller(db, caller_id)
        _require_permission(db, user, Permission.MANAGE_USERS)
        role = parse_role(role)

        if UserProfileRepository.get_by_user_id(db, target_user_id) is not None:
            logger.warning(f"[PROFILE] Profile already exists for {target_user_id}")
            raise AlreadyExists("User profile already exists")

        if auth_manager.get_user(db, target_user_id) is None:
            raise NotFound(f"User {target_user_id} not found")

        try:
            profile = UserProfileRepository.create(
                db,
                user_id=target_user_id,
                role=role.value,
                permissions=permission_values_for_role(role),
                department=department,
                employee_id=employee_id,
                assigned_zones=_zone_list(assigned_zones),
                is_active=True,
            )
            AuditLogger.record(
                db, user.user_id, "create_profile", "user_profiles",
                resource_id=profile.id,
                details={"user_id": target_user_id, "role": role.value},
                ip_address=ip_address, user_agent=user_agent
            )
            db.commit()
        except IntegrityError:
            db.rollback()
            raise AlreadyExists("User profile already exists")

        logger.info(f"[PROFILE] {user.user_id} created profile {profile.id} for {target_user_id} ({role.value})")
        return profile.id

    @staticmethod
    def update_profile(
        db: Session,
        caller_id: Optional[str],
        profile_id: str,
        updates: Dict[str, Any],
        ip_address: str = None,
        user_agent: str = None,
    ) -> dict:
        """
        Apply a partial update. Requires manage_users.

        Only keys present in `updates` change. A role change always
        recomputes permissions from the catalog; a `permissions` key supplied
        by the caller is discarded.
        """
        user = _require_caller(db, caller_id)
        _require_permission(db, user, Permission.MANAGE_USERS)

        profile = UserProfileRepository.get_by_id(db, profile_id)
        if profile is None:
            raise NotFound(f"Profile {profile_id} not found")

        if "permissions" in updates:
            logger.warning(f"[PROFILE] Ignoring directly supplied permissions for profile {profile_id}")

        changes = {k: v for k, v in updates.items() if k in UPDATABLE_FIELDS}
        unknown = set(updates) - UPDATABLE_FIELDS - {"permissions"}
        if unknown:
            raise ValueError(f"Unknown profile fields: {sorted(unknown)}")

        if "role" in changes:
            role = parse_role(changes["role"])
            changes["role"] = role.value
            changes["permissions"] = permission_values_for_role(role)
        if "assigned_zones" in changes:
            changes["assigned_zones"] = _zone_list(changes["assigned_zones"])

        if not changes:
            logger.debug(f"[PROFILE] Empty update for profile {profile_id}, nothing written")
            return profile.to_dict()

        try:
            UserProfileRepository.patch(db, profile, changes)
            AuditLogger.record(
                db, user.user_id, "update_profile", "user_profiles",
                resource_id=profile.id,
                details={"fields": sorted(k for k in changes if k != "permissions")},
                ip_address=ip_address, user_agent=user_agent
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"[PROFILE] {user.user_id} updated profile {profile_id}: {sorted(changes)}")
        return profile.to_dict()

    @staticmethod
    def update_last_login(db: Session, caller_id: Optional[str]) -> Optional[dict]:
        """Stamp the caller's own profile. Silent None when unauthenticated or profile-less."""
        user = auth_manager.get_user(db, caller_id)
        if user is None:
            return None
        profile = UserProfileRepository.get_by_user_id(db, user.user_id)
        if profile is None:
            return None

        UserProfileRepository.patch(db, profile, {"last_login": datetime.utcnow()})
        db.commit()
        logger.debug(f"[PROFILE] last_login updated for {user.user_id}")
        return profile.to_dict()

    @staticmethod
    def list_all_with_profiles(db: Session, caller_id: Optional[str]) -> List[dict]:
        """Every user with their profile. Unauthenticated raises; lacking manage_users gives []."""
        user = _require_caller(db, caller_id)
        if not _holds(db, user, Permission.MANAGE_USERS):
            logger.warning(f"[PROFILE] {user.user_id} listed users without manage_users")
            return []

        profiles = {p.user_id: p for p in UserProfileRepository.list_all(db)}
        return [_user_with_profile(u, profiles.get(u.user_id)) for u in UserRepository.list_all(db)]

    @staticmethod
    def list_users_without_profile(db: Session, caller_id: Optional[str]) -> List[dict]:
        """Users that own no profile. Same gating as list_all_with_profiles."""
        user = _require_caller(db, caller_id)
        if not _holds(db, user, Permission.MANAGE_USERS):
            return []
        return [u.to_dict() for u in UserRepository.list_without_profile(db)]
