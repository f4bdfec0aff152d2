from pydantic import model_validator
from pydantic_settings import BaseSettings
from typing import Optional

INSECURE_SECRET_PREFIX = "change-me"
SIGNING_SECRETS = (
    "END_USER_JWT_SECRET",
    "JWT_SECRET",
    "JWT_REFRESH_SECRET",
    "CPANEL_JWT_SECRET",
    "CPANEL_JWT_REFRESH_SECRET",
)


class Settings(BaseSettings):
    # Application settings
    APP_NAME: str = "MSPK Apps Auth"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./apps_auth.db"

    # API settings
    API_V1_STR: str = "/api/v1"
    BACKEND_URL: str = "http://localhost:8000"

    # CORS settings
    BACKEND_CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # Password hashing
    BCRYPT_ROUNDS: int = 10
    MIN_PASSWORD_LENGTH: int = 6

    # End-user tokens
    END_USER_JWT_SECRET: str = "change-me-end-user-secret"
    END_USER_TOKEN_EXPIRE_SECONDS: int = 604800

    # Developer tokens
    JWT_SECRET: str = "change-me-developer-secret"
    JWT_REFRESH_SECRET: str = "change-me-developer-refresh-secret"
    JWT_ACCESS_EXPIRE_MINUTES: int = 15
    JWT_REFRESH_EXPIRE_DAYS: int = 7

    # cPanel tokens
    CPANEL_JWT_SECRET: str = "change-me-cpanel-secret"
    CPANEL_JWT_REFRESH_SECRET: str = "change-me-cpanel-refresh-secret"
    CPANEL_ACCESS_EXPIRE_MINUTES: int = 15
    CPANEL_REFRESH_EXPIRE_DAYS: int = 7
    CPANEL_COOKIE_DOMAIN: Optional[str] = None

    # Single-use token lifetimes
    VERIFY_EMAIL_EXPIRE_HOURS: int = 24
    PASSWORD_RESET_EXPIRE_MINUTES: int = 60
    DELETE_ACCOUNT_EXPIRE_HOURS: int = 24
    SET_PASSWORD_EXPIRE_HOURS: int = 24
    PROFILE_UPDATE_EXPIRE_HOURS: int = 24

    # Developer lockout policy
    MAX_FAILED_LOGIN_ATTEMPTS: int = 5
    LOCKOUT_DURATION_MINUTES: int = 30

    # SSO tickets
    REDIS_URL: str
    CPANEL_URL: str = "http://localhost:5174"
    CPANEL_TICKET_TTL_SECONDS: int = 60
    AUTH_API_BASE_URL: str = "http://localhost:8000"
    REDEEM_TIMEOUT_SECONDS: float = 5.0
    REDEEM_MAX_RETRIES: int = 2
    REDEEM_RETRY_BACKOFF_SECONDS: float = 0.25

    # Google sign-in
    GOOGLE_TOKENINFO_URL: str = "https://oauth2.googleapis.com/tokeninfo"
    GOOGLE_TIMEOUT_SECONDS: float = 10.0

    # Mail settings
    MAIL_ENABLED: bool = False
    SMTP_HOST: str = "smtp-relay.brevo.com"
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_STARTTLS: bool = True
    FROM_EMAIL: str = "no-reply@localhost"
    FROM_NAME: str = "MSPK Apps Support"

    @model_validator(mode="after")
    def check_production_secrets(self):
        """Refuse to start in production with a placeholder signing secret"""
        if self.is_production:
            unset = [name for name in SIGNING_SECRETS if getattr(self, name).startswith(INSECURE_SECRET_PREFIX)]
            if unset:
                raise ValueError(f"Set these secrets before running in production: {', '.join(unset)}")
        return self

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def database_path(self) -> str:
        return self.DATABASE_URL.replace("sqlite+aiosqlite:///", "")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


settings = Settings()
