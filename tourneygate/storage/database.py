"""Async database engine construction and schema management.

The engine is built once by the application factory and handed to the
repositories that need it; nothing in the package looks it up globally.
The schema is owned by the Alembic migrations under ``migrations/``;
``init_db`` only exists for development and tests.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from alembic import command
from alembic.config import Config
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel import SQLModel

if TYPE_CHECKING:
    from tourneygate.config.settings import Settings

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


def build_engine(settings: Settings) -> AsyncEngine:
    """Create the process-wide async engine from settings."""
    if settings.database_url.startswith("sqlite"):
        return create_async_engine(settings.database_url, echo=settings.debug)
    return create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_recycle=3600,
        pool_timeout=settings.lookup_timeout_seconds,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables (for dev/testing only; use ``upgrade_schema`` in production)."""
    import tourneygate.models.database  # noqa: F401  register tables

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


def migration_config(database_url: str | None = None) -> Config:
    """Alembic config pointing at the bundled migrations."""
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    if database_url:
        # ConfigParser interpolation: escape percent-encoded credentials.
        config.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))
    return config


def upgrade_schema(database_url: str | None = None, revision: str = "head") -> None:
    """Apply migrations up to ``revision``. Must not be called from a running event loop."""
    command.upgrade(migration_config(database_url), revision)


def downgrade_schema(database_url: str | None = None, revision: str = "base") -> None:
    command.downgrade(migration_config(database_url), revision)
