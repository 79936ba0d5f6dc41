"""
Database setup and connection management for the RBAC store.

This module handles:
- SQLAlchemy engine creation
- Session management
- Connection pooling configuration
- Database initialization
"""

from contextlib import contextmanager
from sqlalchemy import create_engine, inspect, pool, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.exc import SQLAlchemyError
import os
from typing import Generator, Optional
import logging

import urllib.parse
from auth.models import Base

logger = logging.getLogger(__name__)

import dotenv

dotenv.load_dotenv()


class DatabaseConfig:
    """Configuration for database connections"""

    def __init__(self, connection_string: Optional[str] = None):
        self.connection_string = (
            connection_string
            or os.getenv("RBAC_DATABASE_URL")
            or os.getenv("AZURE_SQL_CONNECTION_STRING")
        )

        # Connection pooling
        self.pool_size = int(os.getenv("DB_POOL_SIZE", "10"))
        self.max_overflow = int(os.getenv("DB_MAX_OVERFLOW", "20"))
        self.pool_recycle = int(os.getenv("DB_POOL_RECYCLE", "1500"))

        # Echo SQL for debugging (set False in production)
        self.echo = os.getenv("DB_ECHO", "False").lower() == "true"

        logger.info(f"RBAC database config: pool_size={self.pool_size}, max_overflow={self.max_overflow}")


class DatabaseManager:
    """
    Manages database connections and session lifecycle.

    Usage:
        DatabaseManager.initialize()
        with DatabaseManager.session_scope() as session:
            # Do database operations
            pass
    """

    _engine = None
    _SessionLocal = None
    _db_type = None

    # Table creation order (dependencies first)
    TABLE_CREATION_ORDER = [
        "users",             # No dependencies
        "role_permissions",  # No dependencies
        "security_events",   # No dependencies
        "user_profiles",     # Depends on users
        "admin_bootstrap",   # Depends on users
        "audit_logs",        # Depends on users
    ]

    @classmethod
    def initialize(cls, config: DatabaseConfig = None):
        """
        Initialize database engine and session factory.

        Uses the configured database when one is set, otherwise an in-memory
        SQLite database (development mode).
        """
        if cls._engine is not None:
            logger.warning("DatabaseManager already initialized")
            return

        if config is None:
            config = DatabaseConfig()

        logger.info("Initializing RBAC database...")

        if config.connection_string:
            connection_uri = cls._build_connection_uri(config.connection_string)
            cls._engine = cls._create_engine(connection_uri, config)
            cls._db_type = cls._engine.dialect.name
        else:
            logger.info("🔄 Using SQLite in-memory database (development mode)")
            cls._engine = create_engine(
                "sqlite://",
                echo=config.echo,
                connect_args={"check_same_thread": False},
                poolclass=pool.StaticPool
            )
            cls._db_type = "sqlite"

        cls._SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=cls._engine,
            expire_on_commit=False
        )

        cls.create_tables()
        logger.info(f"✓ RBAC database initialized successfully ({cls._db_type})")

    @classmethod
    def _create_engine(cls, connection_uri: str, config: DatabaseConfig):
        """Create SQLAlchemy engine with pooling"""
        if connection_uri.startswith("sqlite"):
            options = {
                "echo": config.echo,
                "connect_args": {"check_same_thread": False},
            }
            if connection_uri in ("sqlite://", "sqlite:///:memory:"):
                options["poolclass"] = pool.StaticPool
            return create_engine(connection_uri, **options)

        return create_engine(
            connection_uri,
            poolclass=pool.QueuePool,
            pool_size=config.pool_size,
            max_overflow=config.max_overflow,
            pool_recycle=config.pool_recycle,
            echo=config.echo,
            pool_timeout=30,
            pool_pre_ping=True
        )

    @classmethod
    def _build_connection_uri(cls, connection_string: str) -> str:
        """
        Build SQLAlchemy connection URI from connection string.
        Supports PostgreSQL and SQLite URLs and Azure SQL connection strings (pymssql).
        """
        if not connection_string:
            raise ValueError("Connection string is empty")

        if "://" in connection_string:
            return connection_string

        # Azure SQL - parse connection string
        parts = {}
        for part in connection_string.split(';'):
            if '=' in part:
                key, value = part.split('=', 1)
                parts[key.strip()] = value.strip()

        required = ['Server', 'Initial Catalog', 'User ID', 'Password']
        missing = [f for f in required if f not in parts]

        if missing:
            raise ValueError(f"Invalid connection string: missing {missing}")

        server = parts['Server'].replace('tcp:', '').split(',')[0]
        database = parts['Initial Catalog']
        user = parts['User ID']
        password_encoded = urllib.parse.quote_plus(parts['Password'])

        return f"mssql+pymssql://{user}:{password_encoded}@{server}:1433/{database}"

    @classmethod
    def create_tables(cls):
        """Create all tables if they don't exist (IDEMPOTENT)"""
        if cls._engine is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")

        inspector = inspect(cls._engine)
        existing_tables = set(inspector.get_table_names())

        for table_name in cls.TABLE_CREATION_ORDER:
            table = Base.metadata.tables[table_name]
            if table_name not in existing_tables:
                table.create(cls._engine, checkfirst=True)
                existing_tables.add(table_name)
                logger.info(f"✓ Created table: {table_name}")
            else:
                logger.debug(f"Table already exists: {table_name}")

    @classmethod
    def drop_tables(cls):
        """
        Drop all tables. USE WITH CAUTION (for testing only).
        """
        if cls._engine is None:
            raise RuntimeError("Database not initialized")

        logger.warning("DROPPING ALL RBAC TABLES - THIS IS DESTRUCTIVE")
        Base.metadata.drop_all(bind=cls._engine)

    @classmethod
    def dispose(cls):
        """Release the engine and forget the session factory"""
        if cls._engine is not None:
            cls._engine.dispose()
        cls._engine = None
        cls._SessionLocal = None
        cls._db_type = None

    @classmethod
    def new_session(cls) -> Session:
        if cls._SessionLocal is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return cls._SessionLocal()

    @classmethod
    @contextmanager
    def session_scope(cls) -> Generator[Session, None, None]:
        """
        Transactional scope for scripts, startup hooks and tests.
        Commits on success, rolls back on any error.
        """
        session = cls.new_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @classmethod
    def get_session(cls) -> Generator[Session, None, None]:
        """
        FastAPI dependency for getting a database session.

        Usage in FastAPI:

        @router.get("/api/profiles/me")
        def me(db: Session = Depends(DatabaseManager.get_session)):
            ...
        """
        session = cls.new_session()
        try:
            yield session
            try:
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Commit failed: {e}")
                raise
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @classmethod
    def health_check(cls) -> bool:
        """Check if database is healthy"""
        if cls._SessionLocal is None:
            return False
        session = cls._SessionLocal()
        try:
            session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"❌ Database health check failed: {e}")
            return False
        finally:
            session.close()
