import json
from typing import Iterable, Optional

import aiosqlite

from apps_auth.db.database import get_db, db_timestamp
from apps_auth.models.tokens import VerificationToken


class VerificationTokenRepository:
    """Persistence for opaque single-use tokens"""

    @staticmethod
    async def create(
        token: str,
        subject_type: str,
        subject_id: str,
        verify_type: str,
        expires_at: str,
        app_id: Optional[int] = None,
        payload: Optional[dict] = None,
        conn: Optional[aiosqlite.Connection] = None,
    ):
        db = get_db()
        await db.execute(
            """INSERT INTO verification_tokens (token, subject_type, subject_id, app_id, verify_type,
                                                payload, expires_at, used, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, 0, ?)""",
            (
                token,
                subject_type,
                str(subject_id),
                app_id,
                verify_type,
                json.dumps(payload) if payload else None,
                expires_at,
                db_timestamp(),
            ),
            conn=conn
        )

    @staticmethod
    async def get_valid(token: str, subject_type: str, verify_types: Iterable[str]) -> Optional[VerificationToken]:
        """Unused, unexpired token of one of the given purposes (read only)"""
        types = list(verify_types)
        placeholders = ", ".join(["?" for _ in types])
        db = get_db()
        row = await db.fetch_one(
            f"""SELECT * FROM verification_tokens
                WHERE token = ? AND subject_type = ? AND used = 0 AND expires_at > ?
                  AND verify_type IN ({placeholders})""",
            (token, subject_type, db_timestamp(), *types)
        )
        return VerificationToken.from_row(row)

    @staticmethod
    async def consume(token: str, subject_type: str, verify_types: Iterable[str],
                      conn: Optional[aiosqlite.Connection] = None) -> Optional[VerificationToken]:
        """Atomically flip used 0 -> 1; only the caller that wins the update gets the row"""
        types = list(verify_types)
        placeholders = ", ".join(["?" for _ in types])
        db = get_db()
        cursor = await db.execute(
            f"""UPDATE verification_tokens SET used = 1
                WHERE token = ? AND subject_type = ? AND used = 0 AND expires_at > ?
                  AND verify_type IN ({placeholders})""",
            (token, subject_type, db_timestamp(), *types),
            conn=conn
        )
        if cursor.rowcount != 1:
            return None

        row = await db.fetch_one("SELECT * FROM verification_tokens WHERE token = ?", (token,), conn=conn)
        return VerificationToken.from_row(row)

    @staticmethod
    async def invalidate_for_subject(
        subject_type: str,
        subject_id: str,
        verify_type: str,
        except_token: Optional[str] = None,
        conn: Optional[aiosqlite.Connection] = None,
    ) -> int:
        """Mark every outstanding token of this subject and purpose as used"""
        db = get_db()
        cursor = await db.execute(
            """UPDATE verification_tokens SET used = 1
               WHERE subject_type = ? AND subject_id = ? AND verify_type = ? AND used = 0
                 AND token != ?""",
            (subject_type, str(subject_id), verify_type, except_token or ""),
            conn=conn
        )
        return cursor.rowcount


class RefreshTokenRepository:
    """Stored digests of developer refresh tokens, so they can be revoked"""

    @staticmethod
    async def store(developer_id: int, token_hash: str, expires_at: str):
        db = get_db()
        await db.execute(
            "INSERT INTO refresh_tokens (developer_id, token_hash, expires_at, created_at) VALUES (?, ?, ?, ?)",
            (developer_id, token_hash, expires_at, db_timestamp())
        )

    @staticmethod
    async def consume(token_hash: str) -> Optional[int]:
        """Delete an unexpired refresh token; returns its developer id if one was removed"""
        db = get_db()
        async with db.transaction() as conn:
            row = await db.fetch_one(
                "SELECT developer_id FROM refresh_tokens WHERE token_hash = ? AND expires_at > ?",
                (token_hash, db_timestamp()),
                conn=conn
            )
            if not row:
                return None
            await conn.execute("DELETE FROM refresh_tokens WHERE token_hash = ?", (token_hash,))
            return row["developer_id"]

    @staticmethod
    async def delete(token_hash: str) -> bool:
        db = get_db()
        cursor = await db.execute("DELETE FROM refresh_tokens WHERE token_hash = ?", (token_hash,))
        return cursor.rowcount > 0

    @staticmethod
    async def delete_for_developer(developer_id: int, conn: Optional[aiosqlite.Connection] = None) -> int:
        db = get_db()
        cursor = await db.execute(
            "DELETE FROM refresh_tokens WHERE developer_id = ?", (developer_id,), conn=conn
        )
        return cursor.rowcount
