import logging
import re
from datetime import timedelta
from typing import Any, Dict, List, Optional

import aiosqlite

from apps_auth.core.config import settings
from apps_auth.db.database import get_db, db_timestamp
from apps_auth.db.repositories import (
    AppRepository,
    AppGroupRepository,
    EndUserRepository,
    HistoryRepository,
)
from apps_auth.models.end_user import EndUser
from apps_auth.models.tokens import SubjectType, VerifyType
from apps_auth.templates import emails
from .app_credential_gate import AppContext
from .credential_store import CredentialStore, get_credential_store
from .exceptions import (
    AccountBlockedError,
    AccountNotVerifiedError,
    EmailExistsError,
    FeatureDisabledError,
    ForbiddenError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    UseGoogleSignInError,
    ValidationFailedError,
)
from .google_identity import GoogleTokenVerifier, get_google_verifier, resolve_or_link_google_identity
from .mailer import Mailer, get_mailer
from .token_service import TokenDomain, TokenService, get_token_service

logger = logging.getLogger(__name__)

END_USER = SubjectType.END_USER.value
CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")

# Profile fields governed by the app's user_edit_permissions
EDITABLE_FIELDS = ("name", "username", "email")


class EndUserAuthEngine:
    """Account lifecycle for the end-users of developer apps"""

    def __init__(
        self,
        credential_store: Optional[CredentialStore] = None,
        token_service: Optional[TokenService] = None,
        google_verifier: Optional[GoogleTokenVerifier] = None,
        mailer: Optional[Mailer] = None,
    ):
        self.credentials = credential_store or get_credential_store()
        self.tokens = token_service or get_token_service()
        self.google = google_verifier or get_google_verifier()
        self.mailer = mailer or get_mailer()

    # Helpers

    @staticmethod
    def _link(path: str, token: str) -> str:
        return f"{settings.BACKEND_URL.rstrip('/')}{settings.API_V1_STR}{path}?token={token}"

    @staticmethod
    def _clean_password(password: Optional[str]) -> str:
        """Strip control characters and enforce the minimum length"""
        cleaned = CONTROL_CHARS.sub("", password or "")
        if len(cleaned) < settings.MIN_PASSWORD_LENGTH:
            raise ValidationFailedError(
                f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters"
            )
        return cleaned

    @staticmethod
    def _token_expiry(ctx: AppContext) -> int:
        return ctx.app.access_token_expires_seconds or settings.END_USER_TOKEN_EXPIRE_SECONDS

    def _issue_access_token(self, ctx: AppContext, user: EndUser) -> Dict[str, Any]:
        expires_in = self._token_expiry(ctx)
        token = self.tokens.generate(
            TokenDomain.END_USER,
            {"userId": user.id, "appId": ctx.app_id, "email": user.email},
            expires_in,
        )
        return {"access_token": token, "token_type": "Bearer", "expires_in": expires_in}

    async def _user_from_access_token(self, ctx: AppContext, access_token: Optional[str]) -> EndUser:
        claims = self.tokens.verify(access_token, TokenDomain.END_USER)
        if claims.get("appId") != ctx.app_id:
            raise InvalidTokenError("Invalid token")
        user = await EndUserRepository.get_by_id(claims.get("userId"), app_id=ctx.app_id)
        if not user:
            raise NotFoundError("User not found")
        if user.is_blocked:
            raise AccountBlockedError()
        return user

    def _filter_extra(self, ctx: AppContext, extra: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        allowed = set(ctx.extra_fields)
        return {k: v for k, v in (extra or {}).items() if k in allowed}

    @staticmethod
    async def _group_scope(app_id: int, flag: str) -> List[int]:
        """Apps whose same-email accounts share the attribute named by flag"""
        app = await AppRepository.get_by_id(app_id)
        if not app or not app.group_id:
            return [app_id]
        group = await AppGroupRepository.get_by_id(app.group_id)
        if not group or not getattr(group, flag):
            return [app_id]
        return await AppRepository.list_ids_in_group(group.id)

    async def _set_password_everywhere(self, user: EndUser, password_hash: str, reason: str,
                                       scope: List[int], conn: aiosqlite.Connection) -> int:
        """Write the hash to the user and, in common password mode, to the group's same-email users"""
        targets = {user.id: user}
        if len(scope) > 1:
            for other in await EndUserRepository.list_by_email_in_apps(scope, user.email, conn=conn):
                targets.setdefault(other.id, other)

        for target in targets.values():
            await self.credentials.record_password_history(
                END_USER, target.id, target.password_hash, reason, conn=conn
            )
            await EndUserRepository.update_password(target.id, password_hash, conn=conn)
        return len(targets)

    async def _send_verification(self, ctx: AppContext, user: EndUser):
        token = await self.tokens.issue_single_use(
            END_USER, user.id, VerifyType.NEW_ACCOUNT.value,
            timedelta(hours=settings.VERIFY_EMAIL_EXPIRE_HOURS),
            app_id=ctx.app_id,
        )
        subject, html = emails.welcome_verification(ctx.app.app_name, self._link("/auth/verify-email", token))
        self.mailer.send_in_background(user.email, subject, html)

    # Registration and sign-in

    async def register(
        self,
        ctx: AppContext,
        email: str,
        password: str,
        name: Optional[str] = None,
        username: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not ctx.app.allow_email_signin:
            raise FeatureDisabledError("Email/password registration is not enabled for this app")
        if not email or not password:
            raise ValidationFailedError("Email and password are required")
        password = self._clean_password(password)

        existing = await EndUserRepository.get_by_email(ctx.app_id, email)
        if existing:
            if existing.is_google_only:
                raise UseGoogleSignInError("This email is registered with Google Sign-In")
            raise EmailExistsError("A user with this email already exists")

        try:
            user = await EndUserRepository.create(
                app_id=ctx.app_id,
                email=email,
                password_hash=self.credentials.hash_password(password),
                name=name,
                username=username,
                extra=self._filter_extra(ctx, extra),
            )
        except aiosqlite.IntegrityError:
            raise EmailExistsError("A user with this email already exists")

        logger.info(f"Registered end-user {user.id} for app {ctx.app_id}")
        await HistoryRepository.record_login(END_USER, user.id, "register", ctx.app_id, ip_address, user_agent)
        await self._send_verification(ctx, user)

        result = {"user": user.public_dict()}
        result.update(self._issue_access_token(ctx, user))
        return result

    async def login(
        self,
        ctx: AppContext,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not ctx.app.allow_email_signin:
            raise FeatureDisabledError("Email/password login is not enabled for this app")
        if not email or not password:
            raise ValidationFailedError("Email and password are required")

        user = await EndUserRepository.get_by_email(ctx.app_id, email)
        if not user:
            raise InvalidCredentialsError("Email or password is incorrect")
        if user.is_blocked:
            raise AccountBlockedError("Your account has been blocked. Please contact support.")
        if not user.email_verified:
            raise AccountNotVerifiedError()
        if user.is_google_only:
            raise UseGoogleSignInError("This account uses Google Sign-In", status_code=403)
        if not self.credentials.verify_password(password, user.password_hash):
            raise InvalidCredentialsError("Email or password is incorrect")

        await EndUserRepository.update_last_login(user.id)
        await HistoryRepository.record_login(END_USER, user.id, "email", ctx.app_id, ip_address, user_agent)

        user = await EndUserRepository.get_by_id(user.id)
        result = {"user": user.public_dict()}
        result.update(self._issue_access_token(ctx, user))
        return result

    async def google_auth(
        self,
        ctx: AppContext,
        id_token: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not ctx.app.allow_google_signin:
            raise FeatureDisabledError("Google Sign-In is not enabled for this app")

        identity = await self.google.verify(id_token, audience=ctx.google_client_id)
        user, is_new = await resolve_or_link_google_identity(ctx.app_id, identity)
        if user.is_blocked:
            raise AccountBlockedError("Your account has been blocked. Please contact support.")

        await EndUserRepository.update_last_login(user.id)
        await HistoryRepository.record_login(END_USER, user.id, "google", ctx.app_id, ip_address, user_agent)

        user = await EndUserRepository.get_by_id(user.id)
        result = {"user": user.public_dict(), "is_new_user": is_new}
        result.update(self._issue_access_token(ctx, user))
        return result

    # Email verification

    async def verify_email(self, token: Optional[str]) -> EndUser:
        record = await self.tokens.redeem_single_use(token, END_USER, [VerifyType.NEW_ACCOUNT.value])
        if not record:
            raise InvalidTokenError("Verification link is invalid or expired", status_code=400)
        await EndUserRepository.mark_email_verified(record.subject_id)
        logger.info(f"End-user {record.subject_id} verified their email")
        return await EndUserRepository.get_by_id(record.subject_id)

    async def resend_verification(self, ctx: AppContext, email: str):
        """Always succeeds; only unverified password accounts get a new link"""
        user = await EndUserRepository.get_by_email(ctx.app_id, email or "")
        if not user or user.email_verified:
            return
        await self.tokens.invalidate_single_use(END_USER, user.id, VerifyType.NEW_ACCOUNT.value)
        await self._send_verification(ctx, user)

    # Password reset

    async def request_password_reset(self, ctx: AppContext, email: str):
        """Always succeeds; mails a reset link only when the account exists"""
        user = await EndUserRepository.get_by_email(ctx.app_id, email or "")
        if not user:
            logger.info(f"Password reset requested for unknown email on app {ctx.app_id}")
            return

        token = await self.tokens.issue_single_use(
            END_USER, user.id, VerifyType.PASSWORD_CHANGE.value,
            timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
            app_id=ctx.app_id,
        )
        subject, html = emails.password_reset(user.name, self._link("/auth/reset-password", token))
        self.mailer.send_in_background(user.email, subject, html)

    async def peek_password_reset(self, token: Optional[str]) -> bool:
        return await self.tokens.peek_single_use(token, END_USER, [VerifyType.PASSWORD_CHANGE.value]) is not None

    async def _complete_password_token(self, token: Optional[str], new_password: str,
                                       verify_type: VerifyType, reason: str) -> EndUser:
        password = self._clean_password(new_password)
        invalid = InvalidTokenError("This link is invalid or expired", status_code=400)

        pending = await self.tokens.peek_single_use(token, END_USER, [verify_type.value])
        if not pending:
            raise invalid
        scope = await self._group_scope(pending.app_id, "use_common_password")
        password_hash = self.credentials.hash_password(password)

        db = get_db()
        async with db.transaction() as conn:
            record = await self.tokens.redeem_single_use(token, END_USER, [verify_type.value], conn=conn)
            if not record:
                raise invalid
            user = await EndUserRepository.get_by_id(record.subject_id, conn=conn)
            if not user:
                raise invalid

            updated = await self._set_password_everywhere(user, password_hash, reason, scope, conn)
            await self.tokens.invalidate_single_use(
                END_USER, user.id, verify_type.value, except_token=token, conn=conn
            )

        logger.info(f"Password set for end-user {user.id} ({reason}, {updated} account(s))")
        return user

    async def complete_password_reset(self, token: Optional[str], new_password: str):
        user = await self._complete_password_token(
            token, new_password, VerifyType.PASSWORD_CHANGE, "password_reset"
        )
        app = await AppRepository.get_by_id(user.app_id)
        subject, html = emails.password_changed(app.app_name if app else "", db_timestamp())
        self.mailer.send_in_background(user.email, subject, html)

    async def change_password(self, ctx: AppContext, access_token: Optional[str],
                              current_password: str, new_password: str):
        user = await self._user_from_access_token(ctx, access_token)
        if user.is_google_only:
            raise UseGoogleSignInError(
                "This account has no password yet. Use the set-password flow.", status_code=403
            )
        if not self.credentials.verify_password(current_password, user.password_hash):
            raise InvalidCredentialsError("Current password is incorrect")

        password_hash = self.credentials.hash_password(self._clean_password(new_password))
        scope = ctx.group_app_ids if ctx.group and ctx.group.use_common_password else [ctx.app_id]

        db = get_db()
        async with db.transaction() as conn:
            await self._set_password_everywhere(user, password_hash, "password_change", scope, conn)

        logger.info(f"End-user {user.id} changed their password")
        subject, html = emails.password_changed(ctx.app.app_name, db_timestamp())
        self.mailer.send_in_background(user.email, subject, html)

    # Google users setting a password

    async def request_set_password(self, ctx: AppContext, email: str):
        """Always succeeds; only Google-linked accounts without a password get a link"""
        user = await EndUserRepository.get_by_email(ctx.app_id, email or "")
        if not user or not user.is_google_only:
            return

        token = await self.tokens.issue_single_use(
            END_USER, user.id, VerifyType.SET_PASSWORD_GOOGLE.value,
            timedelta(hours=settings.SET_PASSWORD_EXPIRE_HOURS),
            app_id=ctx.app_id,
        )
        link = self._link("/auth/verify-email-set-password-google-user", token)
        subject, html = emails.set_password_google_user(ctx.app.app_name, user.name, link)
        self.mailer.send_in_background(user.email, subject, html)

    async def peek_set_password(self, token: Optional[str]) -> bool:
        return await self.tokens.peek_single_use(token, END_USER, [VerifyType.SET_PASSWORD_GOOGLE.value]) is not None

    async def complete_set_password(self, token: Optional[str], new_password: str):
        user = await self._complete_password_token(
            token, new_password, VerifyType.SET_PASSWORD_GOOGLE, "set_password_google"
        )
        subject, html = emails.password_set_confirmation(db_timestamp())
        self.mailer.send_in_background(user.email, subject, html)

    # Account deletion

    async def delete_account(self, ctx: AppContext, email: str):
        """Always succeeds; mails a confirmation link when the account exists"""
        user = await EndUserRepository.get_by_email(ctx.app_id, email or "")
        if not user:
            return

        token = await self.tokens.issue_single_use(
            END_USER, user.id, VerifyType.DELETE_ACCOUNT.value,
            timedelta(hours=settings.DELETE_ACCOUNT_EXPIRE_HOURS),
            app_id=ctx.app_id,
        )
        subject, html = emails.delete_account(ctx.app.app_name, self._link("/auth/verify-delete-email", token))
        self.mailer.send_in_background(user.email, subject, html)

    async def describe_deletion(self, token: Optional[str]) -> Dict[str, Any]:
        """What the confirmation page needs to know about a pending deletion"""
        record = await self.tokens.peek_single_use(token, END_USER, [VerifyType.DELETE_ACCOUNT.value])
        user = await EndUserRepository.get_by_id(record.subject_id) if record else None
        if not user:
            raise InvalidTokenError("This link is invalid or expired", status_code=400)
        app = await AppRepository.get_by_id(user.app_id)
        return {
            "app_name": app.app_name if app else None,
            "password_required": bool(user.password_hash),
        }

    async def confirm_account_deletion(self, token: Optional[str], password: Optional[str] = None):
        invalid = InvalidTokenError("This link is invalid or expired", status_code=400)

        db = get_db()
        async with db.transaction() as conn:
            record = await self.tokens.redeem_single_use(token, END_USER, [VerifyType.DELETE_ACCOUNT.value], conn=conn)
            if not record:
                raise invalid
            user = await EndUserRepository.get_by_id(record.subject_id, conn=conn)
            if not user:
                raise invalid
            # A wrong password rolls back the redemption, so the link stays usable
            if user.password_hash and not self.credentials.verify_password(password, user.password_hash):
                raise InvalidCredentialsError("Password is incorrect")

            await HistoryRepository.record_deletion(user, conn)
            await EndUserRepository.delete_with_dependents(user, conn)

        logger.info(f"Deleted end-user {user.id} from app {user.app_id}")
        app = await AppRepository.get_by_id(user.app_id)
        subject, html = emails.account_deleted(app.app_name if app else "", db_timestamp())
        self.mailer.send_in_background(user.email, subject, html)

    # Profile

    async def get_profile(self, ctx: AppContext, access_token: Optional[str]) -> Dict[str, Any]:
        user = await self._user_from_access_token(ctx, access_token)
        return user.public_dict()

    async def verify_access_token(self, ctx: AppContext, access_token: Optional[str]) -> Dict[str, Any]:
        user = await self._user_from_access_token(ctx, access_token)
        return {"valid": True, "user": user.public_dict()}

    async def update_profile(self, ctx: AppContext, access_token: Optional[str],
                             changes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply permitted profile edits.

        name, username and email are gated by the app's user_edit_permissions; extra
        is limited to the declared extra fields. An email change is only mailed as a
        confirmation link to the new address.
        """
        user = await self._user_from_access_token(ctx, access_token)
        permissions = ctx.app.user_edit_permissions or {}

        for field in EDITABLE_FIELDS:
            if field in changes and not permissions.get(field, False):
                raise ForbiddenError(f"Editing {field} is not allowed for this app")

        new_email = (changes.get("email") or "").strip().lower()
        if new_email == user.email:
            new_email = ""
        if new_email and await EndUserRepository.get_by_email(ctx.app_id, new_email):
            raise EmailExistsError("A user with this email already exists")

        updates: Dict[str, Any] = {}
        for field in ("name", "username"):
            if field in changes:
                updates[field] = changes[field]
        if changes.get("extra") is not None:
            merged = dict(user.extra or {})
            merged.update(self._filter_extra(ctx, changes["extra"]))
            updates["extra"] = merged

        if updates:
            group = ctx.group
            db = get_db()
            async with db.transaction() as conn:
                await EndUserRepository.update_profile(user.id, updates, conn=conn)

                shared = {}
                if group and group.use_common_name and "name" in updates:
                    shared["name"] = updates["name"]
                if group and group.use_common_username and "username" in updates:
                    shared["username"] = updates["username"]
                if shared:
                    siblings = await EndUserRepository.list_by_email_in_apps(ctx.group_app_ids, user.email, conn=conn)
                    for sibling in siblings:
                        if sibling.id != user.id:
                            await EndUserRepository.update_profile(sibling.id, shared, conn=conn)

        pending_email = None
        if new_email:
            token = await self.tokens.issue_single_use(
                END_USER, user.id, VerifyType.PROFILE_UPDATE.value,
                timedelta(hours=settings.PROFILE_UPDATE_EXPIRE_HOURS),
                app_id=ctx.app_id,
                payload={"email": new_email},
            )
            subject, html = emails.profile_update(ctx.app.app_name, user.name, self._link("/user/confirm-update", token))
            self.mailer.send_in_background(new_email, subject, html)
            pending_email = new_email

        user = await EndUserRepository.get_by_id(user.id)
        return {"user": user.public_dict(), "pending_email": pending_email}

    async def confirm_profile_update(self, token: Optional[str]) -> EndUser:
        invalid = InvalidTokenError("This link is invalid or expired", status_code=400)

        db = get_db()
        async with db.transaction() as conn:
            record = await self.tokens.redeem_single_use(token, END_USER, [VerifyType.PROFILE_UPDATE.value], conn=conn)
            if not record or not (record.payload or {}).get("email"):
                raise invalid
            user = await EndUserRepository.get_by_id(record.subject_id, conn=conn)
            if not user:
                raise invalid

            new_email = record.payload["email"]
            taken = await EndUserRepository.get_by_email(user.app_id, new_email, conn=conn)
            if taken and taken.id != user.id:
                raise EmailExistsError("A user with this email already exists")
            await EndUserRepository.update_email(user.id, new_email, conn=conn)

        logger.info(f"End-user {user.id} confirmed an email change")
        return await EndUserRepository.get_by_id(user.id)


# Global instance
_engine = None


def get_end_user_auth_engine() -> EndUserAuthEngine:
    """Get global end-user auth engine instance"""
    global _engine
    if _engine is None:
        _engine = EndUserAuthEngine()
    return _engine
