"""
Security middleware for FastAPI:
- Security headers (CSP, HSTS, X-Frame-Options, etc.)
- Request logging for privileged endpoints
"""

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from loguru import logger

from auth.rbac_dependencies import get_client_ip

# Endpoints that change roles, profiles or read the audit trail
PRIVILEGED_PREFIXES = (
    "/api/permissions/roles",
    "/api/profiles",
    "/api/audit",
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all responses.

    Headers added:
    - Strict-Transport-Security (HSTS)
    - X-Frame-Options
    - X-Content-Type-Options
    - Content-Security-Policy
    - Referrer-Policy
    - Permissions-Policy
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"

        # JSON API: nothing to load, nothing to frame
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = (
            "geolocation=(), "
            "microphone=(), "
            "camera=(), "
            "payment=()"
        )

        return response


class SecurityLoggingMiddleware(BaseHTTPMiddleware):
    """Log access to privileged endpoints and the status they returned"""

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if not path.startswith(PRIVILEGED_PREFIXES):
            return await call_next(request)

        client_ip = get_client_ip(request) or "unknown"
        response = await call_next(request)

        if response.status_code in (401, 403):
            logger.warning(
                f"[SECURITY] Denied {request.method} {path} from {client_ip} -> {response.status_code}"
            )
        else:
            logger.info(
                f"[SECURITY] {request.method} {path} from {client_ip} -> {response.status_code}"
            )
        return response
