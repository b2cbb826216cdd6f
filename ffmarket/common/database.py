import logging
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from .db import Base

# Register mapped tables on Base.metadata
from ..orders.model import Order  # noqa: F401
from ..products.model import Product  # noqa: F401

_logger = logging.getLogger(__name__)


class Database:
    """Async SQLAlchemy engine plus session factory, owned by one application."""

    def __init__(self, url: str, echo: bool = False, engine: Optional[AsyncEngine] = None):
        self.url = url
        if engine is None:
            kwargs = {"future": True, "echo": echo}
            if url.startswith("sqlite") and ":memory:" in url:
                # one shared connection, otherwise every session sees an empty database
                kwargs["poolclass"] = StaticPool
                kwargs["connect_args"] = {"check_same_thread": False}
            engine = create_async_engine(url, **kwargs)
        self.engine = engine
        self.sessionmaker = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    def session(self) -> AsyncSession:
        return self.sessionmaker()

    async def init(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        _logger.info("Database tables ready | url=%s", self.engine.url.render_as_string(hide_password=True))

    async def ping(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(sa.text("SELECT 1"))
            return True
        except Exception as e:
            _logger.warning("Database ping failed: %s", e)
            return False

    async def close(self) -> None:
        await self.engine.dispose()
