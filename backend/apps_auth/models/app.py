from dataclasses import dataclass, field
from typing import ClassVar, Dict, List, Optional

from .base import BaseModel


@dataclass
class AppGroup(BaseModel):
    """Group of apps that may share identity fields ("common mode")"""
    BOOL_FIELDS: ClassVar[tuple] = (
        "use_common_google_oauth",
        "use_common_extra_fields",
        "use_common_username",
        "use_common_name",
        "use_common_password",
        "use_common_extra_fields_data",
    )
    JSON_FIELDS: ClassVar[tuple] = ("common_extra_fields",)

    id: Optional[int] = None
    developer_id: Optional[int] = None
    name: str = ""
    use_common_google_oauth: bool = False
    common_google_client_id: Optional[str] = None
    common_google_client_secret: Optional[str] = None
    use_common_extra_fields: bool = False
    common_extra_fields: Optional[List[str]] = None
    use_common_username: bool = False
    use_common_name: bool = False
    use_common_password: bool = False
    use_common_extra_fields_data: bool = False
    created_at: Optional[str] = None


@dataclass
class App(BaseModel):
    """Third-party application registered by a developer"""
    BOOL_FIELDS: ClassVar[tuple] = (
        "support_email_verified",
        "allow_email_signin",
        "allow_google_signin",
    )
    JSON_FIELDS: ClassVar[tuple] = ("extra_fields", "user_edit_permissions")

    id: Optional[int] = None
    developer_id: Optional[int] = None
    group_id: Optional[int] = None
    app_name: str = ""
    support_email: Optional[str] = None
    support_email_verified: bool = False
    api_key: str = ""
    api_secret_hash: str = ""
    allow_email_signin: bool = True
    allow_google_signin: bool = False
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    extra_fields: Optional[List[str]] = None
    user_edit_permissions: Optional[Dict[str, bool]] = field(default=None)
    access_token_expires_seconds: Optional[int] = None
    created_at: Optional[str] = None

    def public_dict(self) -> dict:
        return {
            "id": self.id,
            "app_name": self.app_name,
            "api_key": self.api_key,
            "group_id": self.group_id,
            "allow_email_signin": self.allow_email_signin,
            "allow_google_signin": self.allow_google_signin,
            "created_at": self.created_at,
        }
