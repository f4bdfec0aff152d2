import aiosqlite
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Dict, List, Optional

from apps_auth.core.config import settings
from apps_auth.db.schema import ALL_TABLES, INDEXES

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    """Current UTC time, naive and truncated to seconds (the stored format)"""
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


def db_timestamp(value: Optional[datetime] = None, **delta: float) -> str:
    """Format a timestamp for storage; keyword arguments are added as a timedelta"""
    value = value or utc_now()
    if delta:
        value = value + timedelta(**delta)
    return value.replace(microsecond=0).isoformat(sep=" ")


class Database:
    def __init__(self):
        self.db_path = settings.database_path
        self.timeout = 10.0

    async def set_db_path(self, new_path: str):
        """Switch to a different database file"""
        self.db_path = new_path

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """Open a dedicated connection"""
        async with aiosqlite.connect(self.db_path, timeout=self.timeout) as conn:
            conn.row_factory = aiosqlite.Row
            await conn.execute("PRAGMA foreign_keys = ON")
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Run a block inside BEGIN IMMEDIATE; commit on success, roll back on any error"""
        async with self.connection() as conn:
            await conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                await conn.rollback()
                raise
            await conn.commit()

    async def execute(self, query: str, params: tuple = (), conn: Optional[aiosqlite.Connection] = None):
        """Execute a write; autocommits unless running on a caller's connection"""
        if conn is not None:
            return await conn.execute(query, params)
        async with self.connection() as own:
            cursor = await own.execute(query, params)
            await own.commit()
            return cursor

    async def fetch_one(self, query: str, params: tuple = (), conn: Optional[aiosqlite.Connection] = None) -> Optional[Dict[str, Any]]:
        """Fetch one row"""
        if conn is not None:
            cursor = await conn.execute(query, params)
            row = await cursor.fetchone()
            return dict(row) if row else None
        async with self.connection() as own:
            cursor = await own.execute(query, params)
            row = await cursor.fetchone()
            return dict(row) if row else None

    async def fetch_all(self, query: str, params: tuple = (), conn: Optional[aiosqlite.Connection] = None) -> List[Dict[str, Any]]:
        """Fetch all rows"""
        if conn is not None:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]
        async with self.connection() as own:
            cursor = await own.execute(query, params)
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]


# Global database instance
db = Database()


def get_db() -> Database:
    """Get the database instance - use this for all database operations"""
    return db


async def create_tables():
    """Create all database tables"""
    async with db.connection() as conn:
        for table_sql in ALL_TABLES:
            await conn.execute(table_sql)

        for index_sql in INDEXES:
            await conn.execute(index_sql)

        await conn.commit()


async def init_db():
    """Initialize database with schema"""
    await create_tables()
    logger.info(f"Database initialized at {db.db_path}")
