from .base import BaseModel
from .developer import Developer, DeveloperPlan
from .app import App, AppGroup
from .end_user import EndUser, CredentialMode
from .tokens import VerificationToken, VerifyType, SubjectType

__all__ = [
    "BaseModel",
    "Developer",
    "DeveloperPlan",
    "App",
    "AppGroup",
    "EndUser",
    "CredentialMode",
    "VerificationToken",
    "VerifyType",
    "SubjectType",
]
