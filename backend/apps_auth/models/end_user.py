from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional

from .base import BaseModel


class CredentialMode(str, Enum):
    PASSWORD_ONLY = "password_only"
    GOOGLE_ONLY = "google_only"
    PASSWORD_AND_GOOGLE = "password+google_linked"


@dataclass
class EndUser(BaseModel):
    """Customer of a developer's app, scoped by app_id"""
    BOOL_FIELDS: ClassVar[tuple] = ("google_linked", "email_verified", "is_blocked")
    JSON_FIELDS: ClassVar[tuple] = ("extra",)

    id: Optional[str] = None
    app_id: Optional[int] = None
    email: str = ""
    username: Optional[str] = None
    name: Optional[str] = None
    password_hash: Optional[str] = None
    google_id: Optional[str] = None
    google_linked: bool = False
    email_verified: bool = False
    is_blocked: bool = False
    last_login: Optional[str] = None
    extra: Optional[dict] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_google_only(self) -> bool:
        return self.google_linked and not self.password_hash

    @property
    def credential_mode(self) -> CredentialMode:
        if self.is_google_only:
            return CredentialMode.GOOGLE_ONLY
        if self.google_linked:
            return CredentialMode.PASSWORD_AND_GOOGLE
        return CredentialMode.PASSWORD_ONLY

    def public_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "username": self.username,
            "email_verified": self.email_verified,
            "google_linked": self.google_linked,
            "credential_mode": self.credential_mode.value,
            "is_blocked": self.is_blocked,
            "last_login": self.last_login,
            "extra": self.extra or {},
            "created_at": self.created_at,
        }
