"""Database engine, session factory, and base classes.

All tenants share one database.  Tenant-owned tables carry a `client_id`
column (see ClientScopedMixin) and every query against them filters on it.

Session dependency for FastAPI:
  - get_db()  → one transaction per request: commit on success, rollback
                on any exception so a lifecycle call never half-applies.
"""

from sqlalchemy import String
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from stockbook.config import settings


def _engine_kwargs(url: str) -> dict:
    # SQLite (tests, local tooling) has no connection pool sizing
    if url.startswith("sqlite"):
        return {}
    return {"pool_size": 20, "max_overflow": 10, "pool_pre_ping": True}


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    **_engine_kwargs(settings.database_url),
)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


# ── Base classes ────────────────────────────────────────────

class Base(DeclarativeBase):
    pass


class ClientScopedMixin:
    """Adds the owning tenant column to a model."""

    client_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)


# ── Session dependency ──────────────────────────────────────

async def get_db() -> AsyncSession:
    """Yield a session wrapped in a single transaction."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
