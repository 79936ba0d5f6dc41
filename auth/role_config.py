# role_config.py
"""
Role and permission catalog for the security operations dashboard.
Defines every permission identifier, each role's permission set and its description.

The catalog is code: changing it requires a redeploy, a reinitialize of the
role_permissions mirror and a profile resync (profiles hold a snapshot).
"""

from enum import Enum
from typing import Dict, Iterable, List


class Permission(str, Enum):
    # Admin
    MANAGE_USERS = "manage_users"
    MANAGE_ROLES = "manage_roles"
    VIEW_AUDIT_LOGS = "view_audit_logs"
    SYSTEM_SETTINGS = "system_settings"

    # Security management
    MANAGE_SECURITY_EVENTS = "manage_security_events"
    VIEW_ALL_EVENTS = "view_all_events"
    RESOLVE_EVENTS = "resolve_events"
    CREATE_EVENTS = "create_events"

    # Guard dogs
    MANAGE_GUARD_DOGS = "manage_guard_dogs"
    VIEW_GUARD_DOGS = "view_guard_dogs"
    UPDATE_DOG_STATUS = "update_dog_status"

    # Bodyguards
    MANAGE_BODYGUARDS = "manage_bodyguards"
    VIEW_BODYGUARDS = "view_bodyguards"
    UPDATE_GUARD_STATUS = "update_guard_status"

    # CCTV
    MANAGE_CAMERAS = "manage_cameras"
    VIEW_CAMERAS = "view_cameras"
    CONTROL_CAMERAS = "control_cameras"

    # Dashboard and reports
    VIEW_DASHBOARD = "view_dashboard"
    VIEW_REPORTS = "view_reports"
    GENERATE_REPORTS = "generate_reports"

    USE_AI_CHAT = "use_ai_chat"
    ACCESS_ALL_ZONES = "access_all_zones"

    # SIEM
    VIEW_SIEM = "view_siem"
    MANAGE_SIEM = "manage_siem"
    VIEW_NETWORK_LOGS = "view_network_logs"
    MANAGE_NETWORK_SECURITY = "manage_network_security"

    def __str__(self):
        return self.value


class Role(str, Enum):
    ADMIN = "admin"
    SECURITY_MANAGER = "security_manager"
    BODYGUARD = "bodyguard"
    DOG_HANDLER = "dog_handler"
    CCTV_OPERATOR = "cctv_operator"
    VIEWER = "viewer"

    def __str__(self):
        return self.value


P = Permission

ROLES = {
    Role.ADMIN: {
        "name": "Administrator",
        "description": "Full system access with all administrative privileges",
        "permissions": [
            P.MANAGE_USERS,
            P.MANAGE_ROLES,
            P.VIEW_AUDIT_LOGS,
            P.SYSTEM_SETTINGS,
            P.MANAGE_SECURITY_EVENTS,
            P.VIEW_ALL_EVENTS,
            P.RESOLVE_EVENTS,
            P.CREATE_EVENTS,
            P.MANAGE_GUARD_DOGS,
            P.VIEW_GUARD_DOGS,
            P.UPDATE_DOG_STATUS,
            P.MANAGE_BODYGUARDS,
            P.VIEW_BODYGUARDS,
            P.UPDATE_GUARD_STATUS,
            P.MANAGE_CAMERAS,
            P.VIEW_CAMERAS,
            P.CONTROL_CAMERAS,
            P.VIEW_DASHBOARD,
            P.VIEW_REPORTS,
            P.GENERATE_REPORTS,
            P.USE_AI_CHAT,
            P.ACCESS_ALL_ZONES,
            P.VIEW_SIEM,
            P.MANAGE_SIEM,
            P.VIEW_NETWORK_LOGS,
            P.MANAGE_NETWORK_SECURITY,
        ],
    },
    Role.SECURITY_MANAGER: {
        "name": "Security Manager",
        "description": "Manages security operations and personnel",
        "permissions": [
            P.MANAGE_SECURITY_EVENTS,
            P.VIEW_ALL_EVENTS,
            P.RESOLVE_EVENTS,
            P.CREATE_EVENTS,
            P.VIEW_GUARD_DOGS,
            P.UPDATE_DOG_STATUS,
            P.VIEW_BODYGUARDS,
            P.UPDATE_GUARD_STATUS,
            P.VIEW_CAMERAS,
            P.CONTROL_CAMERAS,
            P.VIEW_DASHBOARD,
            P.VIEW_REPORTS,
            P.GENERATE_REPORTS,
            P.USE_AI_CHAT,
            P.ACCESS_ALL_ZONES,
            P.VIEW_SIEM,
            P.VIEW_NETWORK_LOGS,
        ],
    },
    Role.BODYGUARD: {
        "name": "Bodyguard",
        "description": "Field security personnel with operational access",
        "permissions": [
            P.VIEW_ALL_EVENTS,
            P.RESOLVE_EVENTS,
            P.CREATE_EVENTS,
            P.VIEW_GUARD_DOGS,
            P.VIEW_BODYGUARDS,
            P.UPDATE_GUARD_STATUS,
            P.VIEW_CAMERAS,
            P.VIEW_DASHBOARD,
            P.USE_AI_CHAT,
        ],
    },
    Role.DOG_HANDLER: {
        "name": "Dog Handler",
        "description": "Specialized in guard dog management and operations",
        "permissions": [
            P.VIEW_ALL_EVENTS,
            P.CREATE_EVENTS,
            P.MANAGE_GUARD_DOGS,
            P.VIEW_GUARD_DOGS,
            P.UPDATE_DOG_STATUS,
            P.VIEW_BODYGUARDS,
            P.VIEW_CAMERAS,
            P.VIEW_DASHBOARD,
            P.USE_AI_CHAT,
        ],
    },
    Role.CCTV_OPERATOR: {
        "name": "CCTV Operator",
        "description": "Monitors and controls surveillance systems",
        "permissions": [
            P.VIEW_ALL_EVENTS,
            P.CREATE_EVENTS,
            P.RESOLVE_EVENTS,
            P.VIEW_GUARD_DOGS,
            P.VIEW_BODYGUARDS,
            P.MANAGE_CAMERAS,
            P.VIEW_CAMERAS,
            P.CONTROL_CAMERAS,
            P.VIEW_DASHBOARD,
            P.USE_AI_CHAT,
            P.VIEW_SIEM,
            P.VIEW_NETWORK_LOGS,
        ],
    },
    Role.VIEWER: {
        "name": "Viewer",
        "description": "Read-only access to security information",
        "permissions": [
            P.VIEW_ALL_EVENTS,
            P.VIEW_GUARD_DOGS,
            P.VIEW_BODYGUARDS,
            P.VIEW_CAMERAS,
            P.VIEW_DASHBOARD,
        ],
    },
}

del P

# Role assigned by the first-boot bootstrap when an admin already exists
DEFAULT_ROLE = Role.VIEWER
BOOTSTRAP_DEPARTMENT = "Administration"
BOOTSTRAP_ZONES = ["Main Building"]


def validate_role(role_name) -> bool:
    """Validate if role exists"""
    try:
        parse_role(role_name)
        return True
    except ValueError:
        return False


def parse_role(value) -> Role:
    """Convert a stored/wire value to a Role, rejecting unknown names"""
    if isinstance(value, Role):
        return value
    try:
        return Role(str(value).strip().lower())
    except ValueError:
        raise ValueError(f"Unknown role: {value!r}")


def parse_permission(value) -> Permission:
    """Convert a stored/wire value to a Permission, rejecting unknown identifiers"""
    if isinstance(value, Permission):
        return value
    try:
        return Permission(str(value).strip())
    except ValueError:
        raise ValueError(f"Unknown permission: {value!r}")


def parse_permissions(values: Iterable) -> List[Permission]:
    return [parse_permission(v) for v in values]


def get_role_config(role_name) -> dict:
    """Get role configuration by name (empty config for unknown roles)"""
    try:
        return ROLES[parse_role(role_name)]
    except ValueError:
        return {}


def permissions_for_role(role_name) -> List[Permission]:
    """
    Ordered, de-duplicated permission list for a role.
    Unknown roles get an empty list, never an error.
    """
    seen = set()
    result = []
    for permission in get_role_config(role_name).get("permissions", []):
        if permission not in seen:
            seen.add(permission)
            result.append(permission)
    return result


def permission_values_for_role(role_name) -> List[str]:
    """Same as permissions_for_role, as plain strings for storage"""
    return [p.value for p in permissions_for_role(role_name)]


def get_role_description(role_name) -> str:
    return get_role_config(role_name).get("description", "")


def get_role_descriptions() -> Dict[Role, str]:
    """Full role -> description table used to seed the role_permissions mirror"""
    return {role: config["description"] for role, config in ROLES.items()}
