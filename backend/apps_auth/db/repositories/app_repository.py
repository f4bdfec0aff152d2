import json
from typing import List, Optional

from apps_auth.db.database import get_db, db_timestamp
from apps_auth.models.app import App, AppGroup


class AppRepository:
    """Repository for registered apps"""

    @staticmethod
    async def create(
        developer_id: int,
        app_name: str,
        api_key: str,
        api_secret_hash: str,
        group_id: Optional[int] = None,
        support_email: Optional[str] = None,
        allow_email_signin: bool = True,
        allow_google_signin: bool = False,
        google_client_id: Optional[str] = None,
        extra_fields: Optional[List[str]] = None,
        user_edit_permissions: Optional[dict] = None,
        access_token_expires_seconds: Optional[int] = None,
    ) -> App:
        db = get_db()
        cursor = await db.execute(
            """INSERT INTO apps (developer_id, group_id, app_name, support_email, api_key, api_secret_hash,
                                 allow_email_signin, allow_google_signin, google_client_id, extra_fields,
                                 user_edit_permissions, access_token_expires_seconds, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                developer_id,
                group_id,
                app_name,
                support_email,
                api_key,
                api_secret_hash,
                int(allow_email_signin),
                int(allow_google_signin),
                google_client_id,
                json.dumps(extra_fields) if extra_fields else None,
                json.dumps(user_edit_permissions) if user_edit_permissions is not None else None,
                access_token_expires_seconds,
                db_timestamp(),
            )
        )
        return await AppRepository.get_by_id(cursor.lastrowid)

    @staticmethod
    async def get_by_id(app_id: int) -> Optional[App]:
        db = get_db()
        row = await db.fetch_one("SELECT * FROM apps WHERE id = ?", (app_id,))
        return App.from_row(row)

    @staticmethod
    async def get_by_credentials(api_key: str, api_secret_hash: str) -> Optional[App]:
        """Match key and secret digest in a single lookup"""
        db = get_db()
        row = await db.fetch_one(
            "SELECT * FROM apps WHERE api_key = ? AND api_secret_hash = ?",
            (api_key, api_secret_hash)
        )
        return App.from_row(row)

    @staticmethod
    async def update_secret_hash(app_id: int, developer_id: int, api_secret_hash: str) -> bool:
        db = get_db()
        cursor = await db.execute(
            "UPDATE apps SET api_secret_hash = ? WHERE id = ? AND developer_id = ?",
            (api_secret_hash, app_id, developer_id)
        )
        return cursor.rowcount == 1

    @staticmethod
    async def list_ids_in_group(group_id: int) -> List[int]:
        db = get_db()
        rows = await db.fetch_all("SELECT id FROM apps WHERE group_id = ?", (group_id,))
        return [row["id"] for row in rows]


class AppGroupRepository:
    """Repository for app groups"""

    @staticmethod
    async def get_by_id(group_id: int) -> Optional[AppGroup]:
        db = get_db()
        row = await db.fetch_one("SELECT * FROM app_groups WHERE id = ?", (group_id,))
        return AppGroup.from_row(row)

    @staticmethod
    async def create(developer_id: int, name: str, **flags) -> AppGroup:
        """Create a group; flags are AppGroup column values"""
        db = get_db()
        data = {"developer_id": developer_id, "name": name, "created_at": db_timestamp()}
        columns_allowed = set(AppGroup.BOOL_FIELDS) | {
            "common_google_client_id", "common_google_client_secret", "common_extra_fields"
        }
        for key, value in flags.items():
            if key not in columns_allowed:
                raise ValueError(f"Unknown group setting: {key}")
            if key in AppGroup.JSON_FIELDS and value is not None:
                value = json.dumps(value)
            elif key in AppGroup.BOOL_FIELDS:
                value = int(bool(value))
            data[key] = value

        columns = ", ".join(data.keys())
        placeholders = ", ".join(["?" for _ in data])
        cursor = await db.execute(
            f"INSERT INTO app_groups ({columns}) VALUES ({placeholders})",
            tuple(data.values())
        )
        return await AppGroupRepository.get_by_id(cursor.lastrowid)
