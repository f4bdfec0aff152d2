from typing import Optional, Tuple

import aiosqlite

from apps_auth.db.database import get_db, db_timestamp
from apps_auth.models.developer import Developer, DeveloperPlan


class DeveloperRepository:
    """Repository for developer account operations"""

    @staticmethod
    async def create(email: str, username: str, name: str, password_hash: str) -> Developer:
        db = get_db()
        now = db_timestamp()
        cursor = await db.execute(
            """INSERT INTO developers (email, username, name, password_hash, email_verified,
                                       is_active, is_blocked, failed_login_attempts, created_at, updated_at)
               VALUES (?, ?, ?, ?, 0, 0, 0, 0, ?, ?)""",
            (email.lower(), username, name, password_hash, now, now)
        )
        return await DeveloperRepository.get_by_id(cursor.lastrowid)

    @staticmethod
    async def get_by_id(developer_id: int, conn: Optional[aiosqlite.Connection] = None) -> Optional[Developer]:
        db = get_db()
        row = await db.fetch_one("SELECT * FROM developers WHERE id = ?", (developer_id,), conn=conn)
        return Developer.from_row(row)

    @staticmethod
    async def get_by_email(email: str) -> Optional[Developer]:
        db = get_db()
        row = await db.fetch_one("SELECT * FROM developers WHERE email = ?", (email.lower(),))
        return Developer.from_row(row)

    @staticmethod
    async def get_by_username(username: str) -> Optional[Developer]:
        db = get_db()
        row = await db.fetch_one("SELECT * FROM developers WHERE username = ?", (username,))
        return Developer.from_row(row)

    @staticmethod
    async def mark_verified(developer_id: int, conn: Optional[aiosqlite.Connection] = None):
        """Verify email and activate the account"""
        db = get_db()
        await db.execute(
            "UPDATE developers SET email_verified = 1, is_active = 1, updated_at = ? WHERE id = ?",
            (db_timestamp(), developer_id),
            conn=conn
        )

    @staticmethod
    async def register_failed_login(developer_id: int, max_attempts: int, lock_minutes: int) -> Tuple[int, Optional[str]]:
        """Increment the failure counter and lock the account once it reaches max_attempts"""
        db = get_db()
        async with db.transaction() as conn:
            await conn.execute(
                """UPDATE developers SET failed_login_attempts = failed_login_attempts + 1, updated_at = ?
                   WHERE id = ?""",
                (db_timestamp(), developer_id)
            )
            row = await db.fetch_one(
                "SELECT failed_login_attempts FROM developers WHERE id = ?", (developer_id,), conn=conn
            )
            attempts = row["failed_login_attempts"] if row else 0

            locked_until = None
            if attempts >= max_attempts:
                locked_until = db_timestamp(minutes=lock_minutes)
                await conn.execute(
                    "UPDATE developers SET locked_until = ? WHERE id = ?",
                    (locked_until, developer_id)
                )
            return attempts, locked_until

    @staticmethod
    async def reset_failed_logins(developer_id: int):
        db = get_db()
        await db.execute(
            """UPDATE developers SET failed_login_attempts = 0, locked_until = NULL, updated_at = ?
               WHERE id = ?""",
            (db_timestamp(), developer_id)
        )

    @staticmethod
    async def update_password(developer_id: int, password_hash: str, conn: Optional[aiosqlite.Connection] = None):
        db = get_db()
        await db.execute(
            "UPDATE developers SET password_hash = ?, updated_at = ? WHERE id = ?",
            (password_hash, db_timestamp(), developer_id),
            conn=conn
        )


class PlanRepository:
    """Read access to developer subscription registrations"""

    @staticmethod
    async def get_active(developer_id: int) -> Optional[DeveloperPlan]:
        """Active registration whose end date (if any) has not passed"""
        db = get_db()
        row = await db.fetch_one(
            """SELECT * FROM developer_plans
               WHERE developer_id = ? AND is_active = 1
                 AND (end_date IS NULL OR end_date > ?)
               ORDER BY id DESC LIMIT 1""",
            (developer_id, db_timestamp())
        )
        return DeveloperPlan.from_row(row)

    @staticmethod
    async def create(developer_id: int, plan_name: str, features: Optional[str] = None,
                     end_date: Optional[str] = None, is_active: bool = True) -> DeveloperPlan:
        db = get_db()
        cursor = await db.execute(
            """INSERT INTO developer_plans (developer_id, plan_name, features, is_active, start_date, end_date)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (developer_id, plan_name, features, int(is_active), db_timestamp(), end_date)
        )
        row = await db.fetch_one("SELECT * FROM developer_plans WHERE id = ?", (cursor.lastrowid,))
        return DeveloperPlan.from_row(row)
