"""PostgreSQL connection pool for the collector's database sink.

Supabase connection modes:
  - Session Pooler  (port 5432) : persistent servers, supports prepared statements
  - Transaction Pooler (port 6543) : serverless/edge, no prepared statement support
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import asyncpg

logger = logging.getLogger(__name__)


@dataclass
class PoolConfig:
    """Pool sizing, timeouts and connect retry policy."""

    min_size: int = 1
    max_size: int = 4
    timeout: float = 5.0
    command_timeout: float = 15.0
    max_inactive_connection_lifetime: float = 30.0
    max_retries: int = 3
    retry_delay: float = 3.0
    ssl: str | None = "require"


class DatabaseManager:
    """Owns the asyncpg pool lifecycle: connect with retry, health, close."""

    def __init__(self, database_url: str, config: PoolConfig | None = None):
        self.database_url = database_url
        self.config = config or PoolConfig()
        self._pool: asyncpg.Pool | None = None
        self.pooler_mode: str = "transaction" if ":6543" in database_url else "session"

    def pool_kwargs(self) -> dict[str, Any]:
        """asyncpg.create_pool arguments for the detected pooler mode.

        PgBouncer in transaction mode can't hold prepared statements or idle
        connections, so the cache and min_size drop to zero there.
        """
        cfg = self.config
        kwargs: dict[str, Any] = {
            "dsn": self.database_url,
            "min_size": cfg.min_size,
            "max_size": cfg.max_size,
            "timeout": cfg.timeout,
            "command_timeout": cfg.command_timeout,
            "statement_cache_size": 100,
            "max_inactive_connection_lifetime": cfg.max_inactive_connection_lifetime,
        }
        if cfg.ssl:
            kwargs["ssl"] = cfg.ssl
        if self.pooler_mode == "transaction":
            kwargs.update(min_size=0, statement_cache_size=0, max_inactive_connection_lifetime=0)
        return kwargs

    async def connect(self) -> None:
        """Create the pool, retrying with exponential backoff."""
        if self._pool is not None:
            logger.warning("Database pool already initialized")
            return

        cfg = self.config
        kwargs = self.pool_kwargs()
        logger.info(f"Connecting with {self.pooler_mode} pooler mode")

        for attempt in range(1, cfg.max_retries + 1):
            try:
                self._pool = await asyncpg.create_pool(**kwargs)
                async with self._pool.acquire() as conn:
                    await conn.fetchval("SELECT 1")
                logger.info(
                    f"Database pool created and verified "
                    f"(mode={self.pooler_mode}, size={kwargs['min_size']}-{cfg.max_size})"
                )
                return
            except (OSError, asyncio.TimeoutError, asyncpg.PostgresError) as e:
                if self._pool is not None:
                    await self._pool.close()
                    self._pool = None
                if attempt >= cfg.max_retries:
                    logger.error(
                        f"Database connection failed after {cfg.max_retries} attempts: {e!r}"
                    )
                    raise
                delay = cfg.retry_delay * (2 ** (attempt - 1))
                logger.warning(
                    f"Database connection attempt {attempt}/{cfg.max_retries} failed: "
                    f"{type(e).__name__}: {e}, retrying in {delay}s..."
                )
                await asyncio.sleep(delay)

    async def close(self) -> None:
        """Close the pool if it is open."""
        if self._pool is None:
            return
        await self._pool.close()
        self._pool = None
        logger.info("Database pool closed")

    async def check_health(self) -> bool:
        """Test if pool can actually execute a query."""
        if self._pool is None:
            return False
        try:
            async with self._pool.acquire(timeout=2.0) as conn:
                await conn.fetchval("SELECT 1")
            return True
        except (OSError, asyncio.TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError):
            return False

    @property
    def pool(self) -> asyncpg.Pool:
        """Get the database connection pool. Raises if not initialized."""
        if self._pool is None:
            raise RuntimeError("Database pool not initialized. Call connect() first.")
        return self._pool
