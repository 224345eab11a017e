from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import asyncpg

logger = logging.getLogger(__name__)


def to_asyncpg_dsn(dsn: str) -> str:
    """Return a plain ``postgresql://`` DSN that asyncpg accepts."""

    if dsn.startswith("postgresql+asyncpg://"):
        return "postgresql://" + dsn[len("postgresql+asyncpg://") :]
    return dsn


def to_sqlalchemy_url(dsn: str) -> str:
    """Ensure the SQLAlchemy URL uses the asyncpg driver."""

    if dsn.startswith("postgresql+asyncpg://"):
        return dsn
    if dsn.startswith("postgresql://"):
        return "postgresql+asyncpg://" + dsn[len("postgresql://") :]
    return dsn


@dataclass(slots=True)
class PostgresConnectionTester:
    """Readiness probe holding a single pooled asyncpg connection."""

    dsn: str
    _pool: asyncpg.Pool | None = None

    async def _ensure_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            self._pool = await asyncpg.create_pool(dsn=to_asyncpg_dsn(self.dsn), min_size=1, max_size=1)
        return self._pool

    async def test_connection(self) -> bool:
        pool = await self._ensure_pool()
        async with pool.acquire() as connection:
            await connection.execute("SELECT 1")
        return True

    async def is_ready(self, timeout: float = 5.0) -> bool:
        try:
            return await asyncio.wait_for(self.test_connection(), timeout=timeout)
        except (asyncio.TimeoutError, OSError, asyncpg.PostgresError) as exc:
            logger.warning("PostgreSQL readiness check failed: %s", exc)
            return False

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
