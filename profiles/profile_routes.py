"""
Profile, permission and audit API endpoints.

Exposed endpoints:
- GET   /api/permissions/check              - Does the caller hold a permission
- GET   /api/permissions/me                 - Caller's effective permissions
- GET   /api/permissions/roles              - Role permission mirror
- POST  /api/permissions/roles/initialize   - Rebuild the mirror (manage_roles)
- POST  /api/permissions/roles/resync       - Resync profiles to the catalog (manage_roles)
- POST  /api/audit                          - Record an audit event
- GET   /api/audit                          - Review audit entries (view_audit_logs)
- GET   /api/profiles/me                    - Caller's user and profile
- GET   /api/profiles/me/access             - Caller's access summary
- POST  /api/profiles/me/initial            - Bootstrap the caller's profile
- POST  /api/profiles/me/last-login         - Stamp the caller's last login
- GET   /api/profiles/users                 - All users with profiles (manage_users)
- GET   /api/profiles/users/without-profile - Users lacking a profile (manage_users)
- POST  /api/profiles                       - Create a profile (manage_users)
- PATCH /api/profiles/{profile_id}          - Update a profile (manage_users)
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from auth.rbac_dependencies import RequestContext, get_optional_caller, get_request_context
from profiles.schemas import (
    AccessSummaryResponse,
    AuditEventRequest,
    CreatedResponse,
    CreateProfileRequest,
    InitializeRolesResponse,
    ProfileResponse,
    ResyncResponse,
    RolePermissionResponse,
    UpdateProfileRequest,
    UserResponse,
    UserWithProfileResponse,
)
from profiles.service import RolePermissionService, UserProfileService
from security.audit.event_logger import AuditLogger
from security.policy.rbac import PermissionChecker, access_summary
from storage.relational.database import DatabaseManager

permissions_router = APIRouter(prefix="/api/permissions", tags=["permissions"])
audit_router = APIRouter(prefix="/api/audit", tags=["audit"])
router = APIRouter(prefix="/api/profiles", tags=["profiles"])


# ==================== PERMISSIONS ====================

@permissions_router.get("/check", response_model=bool)
def check_permission(
    permission: str = Query(..., min_length=1),
    caller_id: Optional[str] = Depends(get_optional_caller),
    db: Session = Depends(DatabaseManager.get_session)
):
    return PermissionChecker.check_permission_for_caller(db, caller_id, permission)


@permissions_router.get("/me", response_model=List[str])
def get_user_permissions(
    caller_id: Optional[str] = Depends(get_optional_caller),
    db: Session = Depends(DatabaseManager.get_session)
):
    return PermissionChecker.get_user_permissions(db, caller_id)


@permissions_router.get("/roles", response_model=List[RolePermissionResponse])
def get_role_permissions(db: Session = Depends(DatabaseManager.get_session)):
    return RolePermissionService.list_records(db)


@permissions_router.post("/roles/initialize", response_model=InitializeRolesResponse)
def initialize_role_permissions(
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(DatabaseManager.get_session)
):
    return RolePermissionService.initialize_role_permissions(
        db, ctx.caller_id, ip_address=ctx.ip_address, user_agent=ctx.user_agent
    )


@permissions_router.post("/roles/resync", response_model=ResyncResponse)
def resync_profiles(
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(DatabaseManager.get_session)
):
    updated = RolePermissionService.resync_profiles(
        db, ctx.caller_id, ip_address=ctx.ip_address, user_agent=ctx.user_agent
    )
    return {"success": True, "updated": updated}


# ==================== AUDIT ====================

@audit_router.post("", response_model=Optional[CreatedResponse])
def log_audit_event(
    request: AuditEventRequest,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(DatabaseManager.get_session)
):
    """Returns {id} of the new entry, or null for an unauthenticated caller"""
    audit_id = AuditLogger.log_event(
        db, ctx.caller_id,
        action=request.action,
        resource=request.resource,
        resource_id=request.resource_id,
        details=request.details,
        ip_address=ctx.ip_address,
        user_agent=ctx.user_agent
    )
    return {"id": audit_id} if audit_id else None


@audit_router.get("")
def list_audit_entries(
    user_id: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    resource: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    caller_id: Optional[str] = Depends(get_optional_caller),
    db: Session = Depends(DatabaseManager.get_session)
):
    return AuditLogger.list_entries(
        db, caller_id, user_id=user_id, action=action, resource=resource, limit=limit
    )


# ==================== PROFILES ====================

@router.get("/me", response_model=Optional[UserWithProfileResponse])
def get_current_user_profile(
    caller_id: Optional[str] = Depends(get_optional_caller),
    db: Session = Depends(DatabaseManager.get_session)
):
    return UserProfileService.get_current_profile(db, caller_id)


@router.get("/me/access", response_model=AccessSummaryResponse)
def get_access_summary(
    caller_id: Optional[str] = Depends(get_optional_caller),
    db: Session = Depends(DatabaseManager.get_session)
):
    return access_summary(UserProfileService.get_caller_profile(db, caller_id))


@router.post("/me/initial", response_model=ProfileResponse)
def create_initial_admin_profile(
    caller_id: Optional[str] = Depends(get_optional_caller),
    db: Session = Depends(DatabaseManager.get_session)
):
    return UserProfileService.create_initial_profile(db, caller_id)


@router.post("/me/last-login", response_model=Optional[ProfileResponse])
def update_last_login(
    caller_id: Optional[str] = Depends(get_optional_caller),
    db: Session = Depends(DatabaseManager.get_session)
):
    return UserProfileService.update_last_login(db, caller_id)


@router.get("/users", response_model=List[UserWithProfileResponse])
def get_all_users(
    caller_id: Optional[str] = Depends(get_optional_caller),
    db: Session = Depends(DatabaseManager.get_session)
):
    return UserProfileService.list_all_with_profiles(db, caller_id)


@router.get("/users/without-profile", response_model=List[UserResponse])
def get_users_without_profile(
    caller_id: Optional[str] = Depends(get_optional_caller),
    db: Session = Depends(DatabaseManager.get_session)
):
    return UserProfileService.list_users_without_profile(db, caller_id)


@router.post("", response_model=CreatedResponse, status_code=201)
def create_user_profile(
    request: CreateProfileRequest,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(DatabaseManager.get_session)
):
    profile_id = UserProfileService.create_profile(
        db, ctx.caller_id,
        target_user_id=request.user_id,
        role=request.role,
        department=request.department,
        employee_id=request.employee_id,
        assigned_zones=request.assigned_zones,
        ip_address=ctx.ip_address,
        user_agent=ctx.user_agent
    )
    return {"id": profile_id}


@router.patch("/{profile_id}", response_model=ProfileResponse)
def update_user_profile(
    profile_id: str,
    request: UpdateProfileRequest,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(DatabaseManager.get_session)
):
    return UserProfileService.update_profile(
        db, ctx.caller_id, profile_id, request.provided_fields(),
        ip_address=ctx.ip_address, user_agent=ctx.user_agent
    )
