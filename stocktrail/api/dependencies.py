"""
Dependency injection for FastAPI routes.

Provides injectable dependencies for:
- Configuration
- Database sessions
- Service instances (identity, inventory, borrowing, activity)
- Authentication
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import AsyncGenerator, Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from loguru import logger
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from stocktrail.errors import AuthenticationError
from stocktrail.security import SCOPE_ACCESS, decode_access_token
from stocktrail.storage.models import User, UserStatus


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class Settings:
    """Application settings loaded from environment."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./stocktrail.db"
    database_echo: bool = False
    db_pool_size: int = 5
    db_max_overflow: int = 5
    db_pool_timeout: float = 10.0

    # Auth
    secret_key: str = "change-me-in-production"
    access_token_expire_minutes: int = 480
    first_login_token_expire_minutes: int = 15

    # Initial Superadmin, created at startup when no Superadmin exists
    bootstrap_admin_email: Optional[str] = None
    bootstrap_admin_password: Optional[str] = None
    bootstrap_admin_name: str = "System Administrator"

    # Inventory
    default_item_threshold: int = 5

    # CORS
    cors_allowed_origins: list[str] = field(default_factory=list)

    # Environment
    environment: str = "development"
    debug: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        origins = os.getenv("CORS_ALLOWED_ORIGINS", "")
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            database_echo=os.getenv("DATABASE_ECHO", "false").lower() == "true",
            db_pool_size=int(os.getenv("DB_POOL_SIZE", cls.db_pool_size)),
            db_max_overflow=int(os.getenv("DB_MAX_OVERFLOW", cls.db_max_overflow)),
            db_pool_timeout=float(os.getenv("DB_POOL_TIMEOUT", cls.db_pool_timeout)),
            secret_key=os.getenv("SECRET_KEY", cls.secret_key),
            access_token_expire_minutes=int(
                os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", cls.access_token_expire_minutes)
            ),
            first_login_token_expire_minutes=int(
                os.getenv("FIRST_LOGIN_TOKEN_EXPIRE_MINUTES", cls.first_login_token_expire_minutes)
            ),
            bootstrap_admin_email=os.getenv("BOOTSTRAP_ADMIN_EMAIL"),
            bootstrap_admin_password=os.getenv("BOOTSTRAP_ADMIN_PASSWORD"),
            bootstrap_admin_name=os.getenv("BOOTSTRAP_ADMIN_NAME", cls.bootstrap_admin_name),
            default_item_threshold=int(os.getenv("DEFAULT_ITEM_THRESHOLD", cls.default_item_threshold)),
            cors_allowed_origins=[o.strip() for o in origins.split(",") if o.strip()],
            environment=os.getenv("STOCKTRAIL_ENV", cls.environment),
            debug=os.getenv("DEBUG", "true").lower() == "true",
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings.from_env()


# =============================================================================
# Database
# =============================================================================

# Global engine and session factory (initialized in lifespan)
_engine = None
_async_session_factory = None


def _configure_sqlite(engine) -> None:
    """
    Enforce foreign keys and take the write lock at BEGIN.

    pysqlite defers BEGIN until the first write, which lets two requests
    both pass an availability check. BEGIN IMMEDIATE serialises writers.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def init_database(settings: Settings) -> None:
    """Initialize database engine and session factory."""
    global _engine, _async_session_factory

    engine_kwargs = {
        "echo": settings.database_echo,
        "pool_pre_ping": True,
    }
    if ":memory:" not in settings.database_url:
        engine_kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
        )

    _engine = create_async_engine(settings.database_url, **engine_kwargs)
    if _engine.dialect.name == "sqlite":
        _configure_sqlite(_engine)

    _async_session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    logger.info(f"Database initialized: {settings.database_url[:50]}")


def get_session_factory() -> async_sessionmaker:
    """Return the session factory, failing if the database is not initialized."""
    if _async_session_factory is None:
        raise RuntimeError("Database not initialized. Call init_database first.")
    return _async_session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session.

    Yields:
        AsyncSession for database operations.
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_tables() -> None:
    """Create database tables."""
    from stocktrail.storage.models import Base
    if _engine is None:
        raise RuntimeError("Database not initialized.")

    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_database() -> None:
    """Close pooled connections."""
    global _engine, _async_session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _async_session_factory = None


# =============================================================================
# Service Dependencies
# =============================================================================

def get_activity_recorder(db: AsyncSession = Depends(get_db)):
    """Dependency for the activity and notification recorder."""
    from stocktrail.activity import ActivityRecorder
    return ActivityRecorder(db)


def get_identity_service(db: AsyncSession = Depends(get_db)):
    """Dependency for identity and access service."""
    from stocktrail.identity import IdentityService
    return IdentityService(db)


def get_inventory_ledger(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Dependency for the inventory ledger."""
    from stocktrail.inventory import InventoryLedger
    return InventoryLedger(db, default_threshold=settings.default_item_threshold)


def get_reference_service(db: AsyncSession = Depends(get_db)):
    """Dependency for committee, type and unit management."""
    from stocktrail.inventory import ReferenceService
    return ReferenceService(db)


def get_borrowing_engine(db: AsyncSession = Depends(get_db)):
    """Dependency for the borrowing engine."""
    from stocktrail.borrowing import BorrowingEngine
    return BorrowingEngine(db)


# =============================================================================
# Authentication Dependencies
# =============================================================================

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/login", auto_error=False)


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    """
    Resolve the caller from the bearer token.

    The role is always read from the stored user row, never from the request.
    """
    if not token:
        raise AuthenticationError("Not authenticated")

    user_id = decode_access_token(token, settings.secret_key, scope=SCOPE_ACCESS)
    if user_id is None:
        raise AuthenticationError("Could not validate credentials")

    user = await db.get(User, user_id)
    if user is None or user.status != UserStatus.ACTIVE:
        raise AuthenticationError("Could not validate credentials")

    return user


# =============================================================================
# Request Context Dependencies
# =============================================================================

async def get_client_ip(request: Request) -> str:
    """Extract client IP from request, considering proxies."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    if request.client:
        return request.client.host

    return "unknown"
