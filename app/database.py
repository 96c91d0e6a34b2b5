"""Database connection management."""

import logging

import asyncpg
from asyncpg import Pool

from app.config import get_settings

logger = logging.getLogger("simplidoc.database")


class Database:
    """Database connection manager using asyncpg."""

    def __init__(self) -> None:
        self._pool: Pool | None = None

    async def connect(self, dsn: str | None = None) -> None:
        """Create database connection pool."""
        settings = get_settings()
        self._pool = await asyncpg.create_pool(
            dsn or settings.database_url,
            min_size=2,
            max_size=10,
        )
        logger.info("Database connection pool created")

    async def disconnect(self) -> None:
        """Close database connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("Database connection pool closed")

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    @property
    def pool(self) -> Pool:
        """Get the connection pool."""
        if not self._pool:
            raise RuntimeError("Database not connected")
        return self._pool


# Global database instance
db = Database()
