"""Apply the collector's SQL migrations once each."""

from __future__ import annotations

import logging
from pathlib import Path

import asyncpg

logger = logging.getLogger(__name__)

VERSIONS_DIR = Path(__file__).resolve().parent / "versions"


class MigrationRunner:
    """Run ``versions/NNN_name.sql`` files in filename order.

    Each applied file's stem is stored in ``pulse_migrations`` and skipped on
    later runs.
    """

    TRACKING_TABLE = "pulse_migrations"

    def __init__(self, pool: asyncpg.Pool, migrations_dir: Path | None = None) -> None:
        self.pool = pool
        self.migrations_dir = migrations_dir or VERSIONS_DIR

    async def pending(self) -> list[Path]:
        """SQL files not yet recorded in the tracking table."""
        async with self.pool.acquire() as conn:
            await conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.TRACKING_TABLE} (
                    version    TEXT PRIMARY KEY,
                    applied_at TIMESTAMPTZ DEFAULT NOW()
                )
                """
            )
            rows = await conn.fetch(f"SELECT version FROM {self.TRACKING_TABLE}")  # noqa: S608

        applied = {row["version"] for row in rows}
        return [p for p in sorted(self.migrations_dir.glob("*.sql")) if p.stem not in applied]

    async def run_pending(self) -> list[str]:
        """Apply every pending migration, each in its own transaction."""
        applied: list[str] = []
        for path in await self.pending():
            logger.info(f"Applying migration: {path.stem}")
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(path.read_text(encoding="utf-8"))
                    await conn.execute(
                        f"INSERT INTO {self.TRACKING_TABLE} (version) VALUES ($1)",  # noqa: S608
                        path.stem,
                    )
            applied.append(path.stem)

        if applied:
            logger.info(f"Applied {len(applied)} migration(s): {', '.join(applied)}")
        else:
            logger.info("Database schema is up to date")
        return applied
