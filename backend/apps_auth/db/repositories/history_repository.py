from typing import Optional

import aiosqlite

from apps_auth.db.database import get_db, db_timestamp
from apps_auth.models.end_user import EndUser


class HistoryRepository:
    """Append-only audit tables"""

    @staticmethod
    async def record_login(
        subject_type: str,
        subject_id: str,
        login_method: str,
        app_id: Optional[int] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ):
        db = get_db()
        await db.execute(
            """INSERT INTO login_history (subject_type, subject_id, app_id, login_method,
                                          ip_address, user_agent, login_time)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (subject_type, str(subject_id), app_id, login_method, ip_address, user_agent, db_timestamp())
        )

    @staticmethod
    async def record_password_change(subject_type: str, subject_id: str, old_hash: str,
                                     reason: Optional[str] = None,
                                     conn: Optional[aiosqlite.Connection] = None):
        db = get_db()
        await db.execute(
            """INSERT INTO password_history (subject_type, subject_id, old_hash, reason, changed_at)
               VALUES (?, ?, ?, ?, ?)""",
            (subject_type, str(subject_id), old_hash, reason, db_timestamp()),
            conn=conn
        )

    @staticmethod
    async def record_deletion(user: EndUser, conn: aiosqlite.Connection):
        """Snapshot written before the user row is removed"""
        db = get_db()
        await db.execute(
            """INSERT INTO deletion_history (app_id, user_id, name, username, email, created_at, deleted_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (user.app_id, user.id, user.name, user.username, user.email, user.created_at, db_timestamp()),
            conn=conn
        )

    @staticmethod
    async def record_api_call(app_id: int, developer_id: int, endpoint: str, method: str,
                              ip_address: Optional[str], user_agent: Optional[str]):
        db = get_db()
        await db.execute(
            """INSERT INTO api_calls (app_id, developer_id, endpoint, method, ip_address, user_agent, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (app_id, developer_id, endpoint, method, ip_address, user_agent, db_timestamp())
        )
