"""
Role-Based Access Control (RBAC) dependencies for FastAPI.

Routes receive the caller id (or None) and a request context; the services
decide whether a missing caller means an empty result or an error.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, Request

from auth.auth_manager import auth_manager


@dataclass
class RequestContext:
    """Who is calling and from where"""
    caller_id: Optional[str]
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


def get_client_ip(request: Request) -> Optional[str]:
    """Extract client IP from request"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None


def get_user_agent(request: Request) -> Optional[str]:
    """Extract User-Agent from request"""
    return request.headers.get("user-agent")


# ==================== DEPENDENCY FUNCTIONS ====================

async def get_optional_caller(authorization: str = Header(None)) -> Optional[str]:
    """
    Dependency: caller id from the bearer token, None if absent or invalid.
    """
    return auth_manager.resolve_caller(authorization)


async def get_request_context(
    request: Request,
    caller_id: Optional[str] = Depends(get_optional_caller)
) -> RequestContext:
    """Dependency: caller id plus client IP and User-Agent for audit entries"""
    return RequestContext(
        caller_id=caller_id,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )

