import json
import uuid
from typing import Any, Dict, List, Optional

import aiosqlite

from apps_auth.db.database import get_db, db_timestamp
from apps_auth.models.end_user import EndUser

# Columns a profile edit may touch
PROFILE_COLUMNS = ("name", "username", "extra")


class EndUserRepository:
    """Repository for end-users, always scoped by app"""

    @staticmethod
    async def create(
        app_id: int,
        email: str,
        password_hash: Optional[str] = None,
        name: Optional[str] = None,
        username: Optional[str] = None,
        google_id: Optional[str] = None,
        google_linked: bool = False,
        email_verified: bool = False,
        extra: Optional[dict] = None,
        conn: Optional[aiosqlite.Connection] = None,
    ) -> EndUser:
        db = get_db()
        user_id = str(uuid.uuid4())
        now = db_timestamp()
        await db.execute(
            """INSERT INTO end_users (id, app_id, email, username, name, password_hash, google_id,
                                      google_linked, email_verified, is_blocked, extra, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?, ?)""",
            (
                user_id,
                app_id,
                email.lower(),
                username,
                name,
                password_hash,
                google_id,
                int(google_linked),
                int(email_verified),
                json.dumps(extra) if extra else None,
                now,
                now,
            ),
            conn=conn
        )
        return await EndUserRepository.get_by_id(user_id, conn=conn)

    @staticmethod
    async def get_by_id(user_id: str, app_id: Optional[int] = None,
                        conn: Optional[aiosqlite.Connection] = None) -> Optional[EndUser]:
        db = get_db()
        if app_id is None:
            row = await db.fetch_one("SELECT * FROM end_users WHERE id = ?", (user_id,), conn=conn)
        else:
            row = await db.fetch_one(
                "SELECT * FROM end_users WHERE id = ? AND app_id = ?", (user_id, app_id), conn=conn
            )
        return EndUser.from_row(row)

    @staticmethod
    async def get_by_email(app_id: int, email: str,
                           conn: Optional[aiosqlite.Connection] = None) -> Optional[EndUser]:
        db = get_db()
        row = await db.fetch_one(
            "SELECT * FROM end_users WHERE app_id = ? AND email = ?", (app_id, email.lower()), conn=conn
        )
        return EndUser.from_row(row)

    @staticmethod
    async def get_by_google_id(app_id: int, google_id: str,
                               conn: Optional[aiosqlite.Connection] = None) -> Optional[EndUser]:
        db = get_db()
        row = await db.fetch_one(
            "SELECT * FROM end_users WHERE app_id = ? AND google_id = ?", (app_id, google_id), conn=conn
        )
        return EndUser.from_row(row)

    @staticmethod
    async def list_by_email_in_apps(app_ids: List[int], email: str,
                                    conn: Optional[aiosqlite.Connection] = None) -> List[EndUser]:
        """Same-email accounts across a set of apps (used for group common mode)"""
        if not app_ids:
            return []
        db = get_db()
        placeholders = ", ".join(["?" for _ in app_ids])
        rows = await db.fetch_all(
            f"SELECT * FROM end_users WHERE email = ? AND app_id IN ({placeholders})",
            (email.lower(), *app_ids),
            conn=conn
        )
        return [EndUser.from_dict(row) for row in rows]

    @staticmethod
    async def link_google(user_id: str, google_id: str, conn: Optional[aiosqlite.Connection] = None):
        """Attach a Google identity; Google has verified the email"""
        db = get_db()
        await db.execute(
            """UPDATE end_users SET google_id = ?, google_linked = 1, email_verified = 1, updated_at = ?
               WHERE id = ?""",
            (google_id, db_timestamp(), user_id),
            conn=conn
        )

    @staticmethod
    async def update_last_login(user_id: str):
        db = get_db()
        await db.execute(
            "UPDATE end_users SET last_login = ? WHERE id = ?", (db_timestamp(), user_id)
        )

    @staticmethod
    async def mark_email_verified(user_id: str, conn: Optional[aiosqlite.Connection] = None):
        db = get_db()
        await db.execute(
            "UPDATE end_users SET email_verified = 1, updated_at = ? WHERE id = ?",
            (db_timestamp(), user_id),
            conn=conn
        )

    @staticmethod
    async def update_password(user_id: str, password_hash: str, conn: Optional[aiosqlite.Connection] = None):
        db = get_db()
        await db.execute(
            "UPDATE end_users SET password_hash = ?, updated_at = ? WHERE id = ?",
            (password_hash, db_timestamp(), user_id),
            conn=conn
        )

    @staticmethod
    async def update_email(user_id: str, email: str, conn: Optional[aiosqlite.Connection] = None):
        db = get_db()
        await db.execute(
            "UPDATE end_users SET email = ?, email_verified = 1, updated_at = ? WHERE id = ?",
            (email.lower(), db_timestamp(), user_id),
            conn=conn
        )

    @staticmethod
    async def update_profile(user_id: str, changes: Dict[str, Any],
                             conn: Optional[aiosqlite.Connection] = None):
        """Apply name/username/extra changes"""
        data = {k: v for k, v in changes.items() if k in PROFILE_COLUMNS}
        if not data:
            return
        if "extra" in data:
            data["extra"] = json.dumps(data["extra"]) if data["extra"] else None
        data["updated_at"] = db_timestamp()

        set_clause = ", ".join([f"{k} = ?" for k in data.keys()])
        values = list(data.values())
        values.append(user_id)

        db = get_db()
        await db.execute(f"UPDATE end_users SET {set_clause} WHERE id = ?", tuple(values), conn=conn)

    @staticmethod
    async def delete_with_dependents(user: EndUser, conn: aiosqlite.Connection):
        """Hard delete the user and every row that references it"""
        db = get_db()
        await db.execute(
            "DELETE FROM password_history WHERE subject_type = 'end_user' AND subject_id = ?",
            (user.id,), conn=conn
        )
        await db.execute(
            "DELETE FROM verification_tokens WHERE subject_type = 'end_user' AND subject_id = ?",
            (user.id,), conn=conn
        )
        await db.execute(
            "DELETE FROM login_history WHERE subject_type = 'end_user' AND subject_id = ?",
            (user.id,), conn=conn
        )
        await db.execute("DELETE FROM end_users WHERE id = ?", (user.id,), conn=conn)
