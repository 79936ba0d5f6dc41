"""
Data access layer for profiles and the role permission mirror.

Repositories only stage changes (add/flush); the service layer owns the
transaction and commits once per operation.

Repository methods:
- UserProfile: get, get_by_user_id, list, count_by_role, create, patch
- RolePermission: list, replace_all
- AdminBootstrap: is_claimed, claim
"""

from sqlalchemy.orm import Session
from typing import Dict, List, Optional, Any
import logging

from auth.models import AdminBootstrap, RolePermission, User, UserProfile

logger = logging.getLogger(__name__)


class UserProfileRepository:
    """
    Repository for UserProfile database operations.
    """

    @staticmethod
    def get_by_id(db: Session, profile_id: str) -> Optional[UserProfile]:
        return db.query(UserProfile).filter(UserProfile.id == profile_id).first()

    @staticmethod
    def get_by_user_id(db: Session, user_id: Optional[str]) -> Optional[UserProfile]:
        """
        Get a user's profile. user_id is unique, so at most one row matches.
        """
        if not user_id:
            return None
        return db.query(UserProfile).filter(UserProfile.user_id == user_id).one_or_none()

    @staticmethod
    def list_all(db: Session) -> List[UserProfile]:
        return db.query(UserProfile).all()

    @staticmethod
    def count_by_role(db: Session, role: str) -> int:
        return db.query(UserProfile).filter(UserProfile.role == role).count()

    @staticmethod
    def owner_ids(db: Session) -> set:
        return {row[0] for row in db.query(UserProfile.user_id).all()}

    @staticmethod
    def create(
        db: Session,
        user_id: str,
        role: str,
        permissions: List[str],
        department: str,
        assigned_zones: List[str],
        employee_id: Optional[str] = None,
        is_active: bool = True
    ) -> UserProfile:
        """
        Stage a new profile.

        Args:
            db: Database session
            user_id: Owner's user id
            role: Role name
            permissions: Materialized permission snapshot for the role
            department: Department name
            assigned_zones: Zones the user may see
            employee_id: Optional employee number
            is_active: Active flag

        Returns:
            The staged UserProfile (flushed, id assigned)
        """
        profile = UserProfile(
            user_id=user_id,
            role=role,
            permissions=permissions,
            department=department,
            employee_id=employee_id,
            is_active=is_active,
            assigned_zones=assigned_zones
        )
        db.add(profile)
        db.flush()

        logger.info(f"Staged profile {profile.id} for user {user_id} (role={role})")
        return profile

    @staticmethod
    def patch(db: Session, profile: UserProfile, updates: Dict[str, Any]) -> UserProfile:
        """Apply only the given fields"""
        for key, value in updates.items():
            setattr(profile, key, value)
        db.flush()
        return profile


class UserRepository:
    """Read access to the identity registry"""

    @staticmethod
    def list_all(db: Session) -> List[User]:
        return db.query(User).order_by(User.created_at).all()

    @staticmethod
    def list_without_profile(db: Session) -> List[User]:
        owners = UserProfileRepository.owner_ids(db)
        return [user for user in UserRepository.list_all(db) if user.user_id not in owners]


class RolePermissionRepository:
    """
    Repository for the persisted role catalog mirror.
    """

    @staticmethod
    def list_all(db: Session) -> List[RolePermission]:
        return db.query(RolePermission).all()

    @staticmethod
    def replace_all(db: Session, records: List[Dict[str, Any]]) -> List[RolePermission]:
        """
        Delete every record and stage the given ones. The delete is flushed
        first so the unique role index never sees old and new rows together.
        """
        deleted = db.query(RolePermission).delete(synchronize_session=False)
        db.flush()

        created = []
        for record in records:
            row = RolePermission(**record)
            db.add(row)
            created.append(row)
        db.flush()

        logger.info(f"Replaced {deleted} role permission records with {len(created)}")
        return created


class AdminBootstrapRepository:
    """Singleton claim row for the first-admin bootstrap"""

    @staticmethod
    def is_claimed(db: Session) -> bool:
        return db.query(AdminBootstrap).filter(
            AdminBootstrap.slot == AdminBootstrap.SLOT
        ).first() is not None

    @staticmethod
    def claim(db: Session, user_id: str) -> AdminBootstrap:
        """Stage the claim; the flush raises IntegrityError if another caller holds it"""
        claim = AdminBootstrap(slot=AdminBootstrap.SLOT, user_id=user_id)
        db.add(claim)
        db.flush()
        return claim
