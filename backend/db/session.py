"""
HSSEOps Database Session Management

Async SQLAlchemy engine and session factory.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from core.config import get_settings

settings = get_settings()

engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    pool_size=10,
    max_overflow=10,
    pool_pre_ping=True,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base for all SQLAlchemy models."""
    pass


async def set_tenant_context(db: AsyncSession, tenant_id: str, local: bool = True) -> bool:
    """
    Set app.current_tenant_id so Postgres row level security scopes the session.

    local=True keeps the setting to the current transaction (request sessions);
    workers pass local=False because they commit more than once per run.
    Returns False on dialects without RLS (SQLite in tests).
    """
    if db.get_bind().dialect.name != "postgresql":
        return False
    await db.execute(
        text("SELECT set_config('app.current_tenant_id', :tenant_id, :is_local)"),
        {"tenant_id": str(tenant_id), "is_local": local},
    )
    return True
