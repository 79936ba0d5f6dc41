"""
Pydantic schemas for profile and permission API validation and serialization.

These schemas handle:
1. Request validation (unknown roles are rejected here)
2. Partial updates (fields that are not sent are not touched)
3. Response serialization
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional, Dict, Any

from auth.role_config import Role


# ============ Request Schemas ============

class CreateProfileRequest(BaseModel):
    """
    Request to create a profile for another user.

    Example:
        {
            "user_id": "550e8400-e29b-41d4-a716-446655440000",
            "role": "bodyguard",
            "department": "Field Operations",
            "employee_id": "BG-0042",
            "assigned_zones": ["North Gate", "Parking"]
        }
    """
    model_config = ConfigDict(extra="forbid")

    user_id: str = Field(..., min_length=1, description="User receiving the profile")
    role: Role
    department: str = Field(..., min_length=1, max_length=255)
    employee_id: Optional[str] = Field(None, max_length=64)
    assigned_zones: List[str] = Field(default_factory=list)


class UpdateProfileRequest(BaseModel):
    """
    Partial profile update.

    Only fields present in the body are applied. `employee_id: null` clears the
    employee id; the other fields cannot be null. Permissions are not settable:
    they follow the role.
    """
    model_config = ConfigDict(extra="forbid")

    role: Optional[Role] = None
    department: Optional[str] = Field(None, min_length=1, max_length=255)
    employee_id: Optional[str] = Field(None, max_length=64)
    assigned_zones: Optional[List[str]] = None
    is_active: Optional[bool] = None

    @field_validator("role", "department", "assigned_zones", "is_active")
    @classmethod
    def reject_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    def provided_fields(self) -> Dict[str, Any]:
        """Only the fields the client actually sent"""
        updates = self.model_dump(exclude_unset=True)
        if "role" in updates:
            updates["role"] = Role(updates["role"])
        return updates


class AuditEventRequest(BaseModel):
    action: str = Field(..., min_length=1, max_length=100)
    resource: str = Field(..., min_length=1, max_length=100)
    resource_id: Optional[str] = Field(None, max_length=100)
    details: Optional[str] = None


# ============ Response Schemas ============

class ProfileResponse(BaseModel):
    id: str
    user_id: str
    role: Role
    permissions: List[str]
    department: str
    employee_id: Optional[str] = None
    is_active: bool
    last_login: Optional[str] = None
    assigned_zones: List[str] = Field(default_factory=list)


class UserResponse(BaseModel):
    user_id: str
    email: Optional[str] = None
    name: Optional[str] = None
    created_at: Optional[str] = None


class UserWithProfileResponse(BaseModel):
    user: UserResponse
    profile: Optional[ProfileResponse] = None


class RolePermissionResponse(BaseModel):
    id: str
    role: Role
    permissions: List[str]
    description: str


class InitializeRolesResponse(BaseModel):
    success: bool
    message: str


class ResyncResponse(BaseModel):
    success: bool
    updated: int


class CreatedResponse(BaseModel):
    id: str


class AccessSummaryResponse(BaseModel):
    role: Optional[Role] = None
    is_active: bool
    permissions: List[str]
    assigned_zones: List[str]
    all_zones: bool
    is_admin: bool
    is_security_manager: bool
    is_bodyguard: bool
    is_dog_handler: bool
    is_cctv_operator: bool
    is_viewer: bool
