from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional

from .base import BaseModel


class SubjectType(str, Enum):
    END_USER = "end_user"
    DEVELOPER = "developer"


class VerifyType(str, Enum):
    """Purpose discriminator for single-use tokens"""
    NEW_ACCOUNT = "New Account"
    PASSWORD_CHANGE = "Password change"
    DELETE_ACCOUNT = "Delete Account"
    SET_PASSWORD_GOOGLE = "Set Password - Google User"
    PROFILE_UPDATE = "profile_update"


@dataclass
class VerificationToken(BaseModel):
    BOOL_FIELDS: ClassVar[tuple] = ("used",)
    JSON_FIELDS: ClassVar[tuple] = ("payload",)

    token: str = ""
    subject_type: str = SubjectType.END_USER.value
    subject_id: str = ""
    app_id: Optional[int] = None
    verify_type: str = VerifyType.NEW_ACCOUNT.value
    payload: Optional[dict] = None
    expires_at: Optional[str] = None
    used: bool = False
    created_at: Optional[str] = None
