from .database import db, get_db, init_db
from .repositories import (
    DeveloperRepository,
    PlanRepository,
    AppRepository,
    AppGroupRepository,
    EndUserRepository,
    VerificationTokenRepository,
    RefreshTokenRepository,
    HistoryRepository,
)

__all__ = [
    "db",
    "get_db",
    "init_db",
    "DeveloperRepository",
    "PlanRepository",
    "AppRepository",
    "AppGroupRepository",
    "EndUserRepository",
    "VerificationTokenRepository",
    "RefreshTokenRepository",
    "HistoryRepository",
]
