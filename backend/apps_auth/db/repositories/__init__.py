from .developer_repository import DeveloperRepository, PlanRepository
from .app_repository import AppRepository, AppGroupRepository
from .end_user_repository import EndUserRepository
from .token_repository import VerificationTokenRepository, RefreshTokenRepository
from .history_repository import HistoryRepository

__all__ = [
    "DeveloperRepository",
    "PlanRepository",
    "AppRepository",
    "AppGroupRepository",
    "EndUserRepository",
    "VerificationTokenRepository",
    "RefreshTokenRepository",
    "HistoryRepository",
]
