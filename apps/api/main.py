# FastAPI entrypoint with all necessary routes and middleware

from contextlib import asynccontextmanager
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
import dotenv

dotenv.load_dotenv()

from auth.exceptions import RBACError
from auth.security_middleware import SecurityHeadersMiddleware, SecurityLoggingMiddleware
from incidents.incident_routes import router as incident_router
from profiles.profile_routes import audit_router, permissions_router, router as profile_router
from profiles.service import RolePermissionService
from storage.relational.database import DatabaseManager


def init_role_permissions():
    """Seed the role permission mirror from the catalog (ungated)"""
    with DatabaseManager.session_scope() as db:
        RolePermissionService.reinitialize(db)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Initializing RBAC database...")
    DatabaseManager.initialize()
    init_role_permissions()
    logger.info("✓ RBAC database initialized and role permissions seeded")
    yield
    logger.info("Shutting down")


# Initialize FastAPI app
app = FastAPI(
    title="Security Operations RBAC API",
    description="Roles, permissions, profiles and audit trail for the security operations dashboard",
    version="1.0.0",
    lifespan=lifespan
)

# ==================== SECURITY MIDDLEWARE STACK ====================

app.add_middleware(SecurityLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


# ==================== CORS MIDDLEWARE ====================

FRONTEND_DOMAINS = [
    origin.strip()
    for origin in os.getenv("FRONTEND_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
    if origin.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=FRONTEND_DOMAINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Authorization",
        "Accept",
        "Origin",
    ],
    max_age=86400,
)


# ==================== ERROR HANDLING ====================

@app.exception_handler(RBACError)
async def rbac_error_handler(request: Request, exc: RBACError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# ==================== HEALTH ====================

@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring system status."""
    healthy = DatabaseManager.health_check()
    return {
        "status": "healthy" if healthy else "unhealthy",
        "components": {"database": "ok" if healthy else "unavailable"}
    }


# ==================== ROUTER REGISTRATION ====================

app.include_router(permissions_router)  # /api/permissions
app.include_router(audit_router)        # /api/audit
app.include_router(profile_router)      # /api/profiles
app.include_router(incident_router)     # /api/incidents


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
