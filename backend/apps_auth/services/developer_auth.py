import logging
from datetime import timedelta
from typing import Any, Dict, Optional

import aiosqlite

from apps_auth.core.config import settings
from apps_auth.db.database import get_db, db_timestamp
from apps_auth.db.repositories import DeveloperRepository, HistoryRepository, RefreshTokenRepository
from apps_auth.models.developer import Developer
from apps_auth.models.tokens import SubjectType, VerifyType
from apps_auth.templates import emails
from .credential_store import CredentialStore, get_credential_store
from .exceptions import (
    AccountBlockedError,
    AccountLockedError,
    AccountNotVerifiedError,
    EmailExistsError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    ValidationFailedError,
)
from .mailer import Mailer, get_mailer
from .token_service import TokenDomain, TokenService, get_token_service

logger = logging.getLogger(__name__)

DEVELOPER = SubjectType.DEVELOPER.value


class DeveloperAuthEngine:
    """Developer portal accounts: registration, sessions and password management"""

    def __init__(
        self,
        credential_store: Optional[CredentialStore] = None,
        token_service: Optional[TokenService] = None,
        mailer: Optional[Mailer] = None,
    ):
        self.credentials = credential_store or get_credential_store()
        self.tokens = token_service or get_token_service()
        self.mailer = mailer or get_mailer()
        self.max_failed_attempts = settings.MAX_FAILED_LOGIN_ATTEMPTS
        self.lockout_duration = settings.LOCKOUT_DURATION_MINUTES

    @staticmethod
    def _link(path: str, token: str) -> str:
        return f"{settings.BACKEND_URL.rstrip('/')}{settings.API_V1_STR}/developer{path}?token={token}"

    @staticmethod
    def _validate_password(password: Optional[str]) -> str:
        if not password or len(password) < settings.MIN_PASSWORD_LENGTH:
            raise ValidationFailedError(
                f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters"
            )
        return password

    async def _issue_session(self, developer: Developer) -> Dict[str, Any]:
        """Mint an access/refresh pair and persist the refresh digest"""
        pair = self.tokens.generate_pair(
            TokenDomain.DEVELOPER,
            {
                "userId": developer.id,
                "email": developer.email,
                "name": developer.name,
                "username": developer.username,
                "role": "developer",
            },
            access_seconds=settings.JWT_ACCESS_EXPIRE_MINUTES * 60,
            refresh_seconds=settings.JWT_REFRESH_EXPIRE_DAYS * 86400,
        )
        await RefreshTokenRepository.store(
            developer.id,
            self.credentials.hash_secret(pair.refresh_token),
            db_timestamp(seconds=pair.refresh_expires_in),
        )
        return {
            "user": dict(developer.public_dict(), role="developer"),
            "tokens": {
                "accessToken": pair.access_token,
                "refreshToken": pair.refresh_token,
                "expiresIn": pair.access_expires_in,
            },
        }

    async def _send_verification(self, developer: Developer):
        token = await self.tokens.issue_single_use(
            DEVELOPER, developer.id, VerifyType.NEW_ACCOUNT.value,
            timedelta(hours=settings.VERIFY_EMAIL_EXPIRE_HOURS),
        )
        subject, html = emails.developer_verification(developer.name, self._link("/verify", token))
        self.mailer.send_in_background(developer.email, subject, html)

    async def register(self, email: str, username: str, name: str, password: str) -> Developer:
        if not email or not username or not name:
            raise ValidationFailedError("Missing required fields")
        password = self._validate_password(password)

        if await DeveloperRepository.get_by_username(username):
            raise EmailExistsError("Username already taken", code="USERNAME_EXISTS")
        if await DeveloperRepository.get_by_email(email):
            raise EmailExistsError("Email already registered")

        try:
            developer = await DeveloperRepository.create(
                email=email,
                username=username,
                name=name,
                password_hash=self.credentials.hash_password(password),
            )
        except aiosqlite.IntegrityError:
            raise EmailExistsError("Email or username already registered")

        logger.info(f"Registered developer {developer.id}")
        await self._send_verification(developer)
        return developer

    async def verify_email(self, token: Optional[str]) -> Developer:
        record = await self.tokens.redeem_single_use(token, DEVELOPER, [VerifyType.NEW_ACCOUNT.value])
        if not record:
            raise InvalidTokenError("Verification link is invalid or expired", status_code=400)
        await DeveloperRepository.mark_verified(int(record.subject_id))
        logger.info(f"Developer {record.subject_id} verified their email")
        return await DeveloperRepository.get_by_id(int(record.subject_id))

    async def resend_verification(self, email: str):
        """Always succeeds; unverified, unblocked accounts get a fresh link"""
        developer = await DeveloperRepository.get_by_email(email or "")
        if not developer or developer.email_verified or developer.is_blocked:
            return
        await self.tokens.invalidate_single_use(DEVELOPER, developer.id, VerifyType.NEW_ACCOUNT.value)
        await self._send_verification(developer)

    async def login(self, email: str, password: str, ip_address: Optional[str] = None,
                    user_agent: Optional[str] = None) -> Dict[str, Any]:
        if not email or not password:
            raise ValidationFailedError("Email and password are required")

        developer = await DeveloperRepository.get_by_email(email)
        if not developer:
            raise InvalidCredentialsError()
        if developer.is_blocked:
            raise AccountBlockedError("This email is blocked. Please contact support.")
        if developer.locked_until and developer.locked_until > db_timestamp():
            raise AccountLockedError()

        if not self.credentials.verify_password(password, developer.password_hash):
            attempts, locked_until = await DeveloperRepository.register_failed_login(
                developer.id, self.max_failed_attempts, self.lockout_duration
            )
            if locked_until:
                logger.warning(f"Developer {developer.id} locked after {attempts} failed logins")
            raise InvalidCredentialsError()

        if not developer.email_verified:
            raise AccountNotVerifiedError("Please verify your email first")

        await DeveloperRepository.reset_failed_logins(developer.id)
        await HistoryRepository.record_login(DEVELOPER, developer.id, "password",
                                             ip_address=ip_address, user_agent=user_agent)
        logger.info(f"Developer {developer.id} logged in")
        return await self._issue_session(developer)

    async def refresh(self, refresh_token: Optional[str]) -> Dict[str, Any]:
        """Rotate the refresh token; the presented one is consumed"""
        claims = self.tokens.verify(refresh_token, TokenDomain.DEVELOPER, refresh=True)
        developer_id = await RefreshTokenRepository.consume(self.credentials.hash_secret(refresh_token))
        if developer_id is None or developer_id != claims.get("userId"):
            raise InvalidTokenError("Invalid token")

        developer = await DeveloperRepository.get_by_id(developer_id)
        if not developer or developer.is_blocked:
            raise InvalidTokenError("Invalid token")
        return await self._issue_session(developer)

    async def logout(self, refresh_token: Optional[str]):
        if refresh_token:
            await RefreshTokenRepository.delete(self.credentials.hash_secret(refresh_token))

    async def request_password_reset(self, email: str):
        """Always succeeds; mails a reset link only when the account exists"""
        developer = await DeveloperRepository.get_by_email(email or "")
        if not developer:
            return
        token = await self.tokens.issue_single_use(
            DEVELOPER, developer.id, VerifyType.PASSWORD_CHANGE.value,
            timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
        )
        subject, html = emails.password_reset(developer.name, self._link("/reset-password", token))
        self.mailer.send_in_background(developer.email, subject, html)

    async def peek_password_reset(self, token: Optional[str]) -> bool:
        record = await self.tokens.peek_single_use(token, DEVELOPER, [VerifyType.PASSWORD_CHANGE.value])
        return record is not None

    async def complete_password_reset(self, token: Optional[str], new_password: str):
        password_hash = self.credentials.hash_password(self._validate_password(new_password))
        invalid = InvalidTokenError("This link is invalid or expired", status_code=400)

        db = get_db()
        async with db.transaction() as conn:
            record = await self.tokens.redeem_single_use(token, DEVELOPER, [VerifyType.PASSWORD_CHANGE.value], conn=conn)
            if not record:
                raise invalid
            developer = await DeveloperRepository.get_by_id(int(record.subject_id), conn=conn)
            if not developer:
                raise invalid

            await self.credentials.record_password_history(
                DEVELOPER, developer.id, developer.password_hash, "password_reset", conn=conn
            )
            await DeveloperRepository.update_password(developer.id, password_hash, conn=conn)
            await self.tokens.invalidate_single_use(
                DEVELOPER, developer.id, VerifyType.PASSWORD_CHANGE.value, except_token=token, conn=conn
            )
            await RefreshTokenRepository.delete_for_developer(developer.id, conn=conn)

        logger.info(f"Developer {developer.id} reset their password")
        subject, html = emails.password_changed("MSPK Apps", db_timestamp())
        self.mailer.send_in_background(developer.email, subject, html)

    async def get_profile(self, access_token: Optional[str]) -> Developer:
        claims = self.tokens.verify(access_token, TokenDomain.DEVELOPER)
        if claims.get("role") != "developer":
            raise InvalidTokenError("Invalid token")
        developer = await DeveloperRepository.get_by_id(claims.get("userId"))
        if not developer:
            raise NotFoundError("Developer not found")
        if developer.is_blocked:
            raise AccountBlockedError()
        return developer

    async def change_password(self, access_token: Optional[str], current_password: str, new_password: str):
        developer = await self.get_profile(access_token)
        if not self.credentials.verify_password(current_password, developer.password_hash):
            raise InvalidCredentialsError("Current password is incorrect")
        password_hash = self.credentials.hash_password(self._validate_password(new_password))

        db = get_db()
        async with db.transaction() as conn:
            await self.credentials.record_password_history(
                DEVELOPER, developer.id, developer.password_hash, "password_change", conn=conn
            )
            await DeveloperRepository.update_password(developer.id, password_hash, conn=conn)
            await RefreshTokenRepository.delete_for_developer(developer.id, conn=conn)

        logger.info(f"Developer {developer.id} changed their password")
        subject, html = emails.password_changed("MSPK Apps", db_timestamp())
        self.mailer.send_in_background(developer.email, subject, html)


# Global instance
_engine = None


def get_developer_auth_engine() -> DeveloperAuthEngine:
    """Get global developer auth engine instance"""
    global _engine
    if _engine is None:
        _engine = DeveloperAuthEngine()
    return _engine
