import os

# Must be set before any app module is imported
os.environ["JWT_SECRET"] = "test-jwt-secret-0123456789abcdef0123456789abcdef"
os.environ.pop("RBAC_DATABASE_URL", None)
os.environ.pop("AZURE_SQL_CONNECTION_STRING", None)

import pytest

from auth.auth_manager import auth_manager
from auth.role_config import Role, permission_values_for_role
from profiles.repository import UserProfileRepository
from storage.relational.database import DatabaseConfig, DatabaseManager


@pytest.fixture(scope="session", autouse=True)
def database():
    DatabaseManager.initialize(DatabaseConfig())
    yield
    DatabaseManager.dispose()


@pytest.fixture(autouse=True)
def clean_schema(database):
    DatabaseManager.drop_tables()
    DatabaseManager.create_tables()
    yield


@pytest.fixture
def db():
    session = DatabaseManager.new_session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(name=None):
        counter["n"] += 1
        label = name or f"user{counter['n']}"
        return auth_manager.register_user(db, email=f"{label}@example.com", name=label)

    return _make


@pytest.fixture
def make_profile(db, make_user):
    """User plus a profile with the given role, staged directly in storage"""

    def _make(role=Role.VIEWER, zones=None, is_active=True, name=None):
        user = make_user(name)
        profile = UserProfileRepository.create(
            db,
            user_id=user.user_id,
            role=Role(role).value,
            permissions=permission_values_for_role(role),
            department="Operations",
            assigned_zones=list(zones if zones is not None else ["Main Building"]),
            is_active=is_active,
        )
        db.commit()
        return user, profile

    return _make


@pytest.fixture
def admin(make_profile):
    user, _ = make_profile(Role.ADMIN, name="admin")
    return user


@pytest.fixture
def auth_headers():
    def _headers(user) -> dict:
        return {"Authorization": f"Bearer {auth_manager.issue_token(user.user_id)}"}

    return _headers
