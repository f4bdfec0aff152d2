from dataclasses import dataclass
from typing import ClassVar, Optional

from .base import BaseModel


@dataclass
class Developer(BaseModel):
    """Portal account that owns apps"""
    BOOL_FIELDS: ClassVar[tuple] = ("email_verified", "is_active", "is_blocked")

    id: Optional[int] = None
    email: str = ""
    username: str = ""
    name: str = ""
    password_hash: str = ""
    email_verified: bool = False
    is_active: bool = False
    is_blocked: bool = False
    failed_login_attempts: int = 0
    locked_until: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def public_dict(self) -> dict:
        """Profile fields that are safe to return to clients"""
        return {
            "id": self.id,
            "email": self.email,
            "username": self.username,
            "name": self.name,
            "email_verified": self.email_verified,
        }


@dataclass
class DeveloperPlan(BaseModel):
    BOOL_FIELDS: ClassVar[tuple] = ("is_active",)
    JSON_FIELDS: ClassVar[tuple] = ("features",)

    id: Optional[int] = None
    developer_id: Optional[int] = None
    plan_name: str = ""
    features: Optional[dict] = None
    is_active: bool = False
    start_date: Optional[str] = None
    end_date: Optional[str] = None
