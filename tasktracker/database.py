from __future__ import annotations

import os
import sys

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from tasktracker.config import settings
from tasktracker.models.base import Base


_engine_kwargs: dict = {"pool_pre_ping": True}

# NOTE: FastAPI's sync TestClient runs requests through an AnyIO portal, which
# may use a different event loop per request. Pooled asyncpg connections must
# not be reused across loops, so pooling is disabled under pytest.
if os.getenv("PYTEST_CURRENT_TEST") or ("pytest" in sys.modules):
    _engine_kwargs["poolclass"] = NullPool

engine = create_async_engine(settings.database_url, **_engine_kwargs)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def init_models(bind: AsyncEngine) -> None:
    """Create missing tables from model metadata."""

    # Import models so they register on Base.metadata.
    import tasktracker.models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

