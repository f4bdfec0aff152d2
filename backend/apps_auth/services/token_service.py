import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Optional

import aiosqlite
import jwt

from apps_auth.core.config import settings
from apps_auth.db.database import db_timestamp
from apps_auth.db.repositories import VerificationTokenRepository
from apps_auth.models.tokens import VerificationToken
from .exceptions import InvalidTokenError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


class TokenDomain(str, Enum):
    END_USER = "end_user"
    DEVELOPER = "developer"
    CPANEL = "cpanel"


@dataclass(frozen=True)
class DomainConfig:
    issuer: str
    audience: str
    secret: str
    refresh_secret: Optional[str] = None


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str
    access_expires_in: int
    refresh_expires_in: int


def _default_domains() -> Dict[TokenDomain, DomainConfig]:
    return {
        TokenDomain.END_USER: DomainConfig(
            issuer="mspk-apps-public",
            audience="mspk-apps-end-users",
            secret=settings.END_USER_JWT_SECRET,
        ),
        TokenDomain.DEVELOPER: DomainConfig(
            issuer="mspk-apps-admin",
            audience="mspk-apps-users",
            secret=settings.JWT_SECRET,
            refresh_secret=settings.JWT_REFRESH_SECRET,
        ),
        TokenDomain.CPANEL: DomainConfig(
            issuer="mspk-apps-auth",
            audience="mspk-apps-auth-developers",
            secret=settings.CPANEL_JWT_SECRET,
            refresh_secret=settings.CPANEL_JWT_REFRESH_SECRET,
        ),
    }


class TokenService:
    """Signed bearer tokens per domain, plus opaque single-use tokens"""

    def __init__(self, domains: Optional[Dict[TokenDomain, DomainConfig]] = None):
        self.domains = domains or _default_domains()

    def _secret(self, domain: TokenDomain, refresh: bool) -> str:
        config = self.domains[domain]
        if refresh:
            if not config.refresh_secret:
                raise ValueError(f"Token domain {domain.value} has no refresh tokens")
            return config.refresh_secret
        return config.secret

    def generate(self, domain: TokenDomain, payload: Dict[str, Any], expires_seconds: int,
                 refresh: bool = False) -> str:
        """Sign a token for the domain; issuer, audience, expiry and type are added here"""
        config = self.domains[domain]
        now = datetime.now(timezone.utc)
        claims = dict(payload)
        claims.update({
            "iss": config.issuer,
            "aud": config.audience,
            "iat": now,
            "exp": now + timedelta(seconds=expires_seconds),
            "typ": "refresh" if refresh else "access",
        })
        if refresh:
            # Distinct refresh tokens even when minted in the same second
            claims["jti"] = uuid.uuid4().hex
        return jwt.encode(claims, self._secret(domain, refresh), algorithm=ALGORITHM)

    def generate_pair(self, domain: TokenDomain, payload: Dict[str, Any],
                      access_seconds: int, refresh_seconds: int) -> TokenPair:
        return TokenPair(
            access_token=self.generate(domain, payload, access_seconds),
            refresh_token=self.generate(domain, payload, refresh_seconds, refresh=True),
            access_expires_in=access_seconds,
            refresh_expires_in=refresh_seconds,
        )

    def verify(self, token: Optional[str], domain: TokenDomain, refresh: bool = False) -> Dict[str, Any]:
        """Decode and check a token; every failure raises the same InvalidTokenError"""
        if not token:
            raise InvalidTokenError("Invalid token")

        config = self.domains[domain]
        try:
            claims = jwt.decode(
                token,
                self._secret(domain, refresh),
                algorithms=[ALGORITHM],
                audience=config.audience,
                issuer=config.issuer,
                options={"require": ["exp", "iss", "aud"]},
            )
        except jwt.InvalidTokenError as e:
            logger.debug(f"{domain.value} token rejected: {type(e).__name__}")
            raise InvalidTokenError("Invalid token")

        expected_type = "refresh" if refresh else "access"
        if claims.get("typ") != expected_type:
            raise InvalidTokenError("Invalid token")
        return claims

    # Single-use tokens

    async def issue_single_use(
        self,
        subject_type: str,
        subject_id: Any,
        verify_type: str,
        expires: timedelta,
        app_id: Optional[int] = None,
        payload: Optional[dict] = None,
        conn: Optional[aiosqlite.Connection] = None,
    ) -> str:
        """Create a 64-hex-char token valid for one redemption"""
        token = secrets.token_hex(32)
        await VerificationTokenRepository.create(
            token=token,
            subject_type=subject_type,
            subject_id=str(subject_id),
            verify_type=verify_type,
            expires_at=db_timestamp(seconds=expires.total_seconds()),
            app_id=app_id,
            payload=payload,
            conn=conn,
        )
        return token

    async def redeem_single_use(self, token: Optional[str], subject_type: str, verify_types: Iterable[str],
                                conn: Optional[aiosqlite.Connection] = None) -> Optional[VerificationToken]:
        """Consume the token; None unless this call flipped it from unused to used"""
        if not token:
            return None
        return await VerificationTokenRepository.consume(token, subject_type, verify_types, conn=conn)

    async def peek_single_use(self, token: Optional[str], subject_type: str,
                              verify_types: Iterable[str]) -> Optional[VerificationToken]:
        """Validate without consuming"""
        if not token:
            return None
        return await VerificationTokenRepository.get_valid(token, subject_type, verify_types)

    async def invalidate_single_use(self, subject_type: str, subject_id: Any, verify_type: str,
                                    except_token: Optional[str] = None,
                                    conn: Optional[aiosqlite.Connection] = None) -> int:
        return await VerificationTokenRepository.invalidate_for_subject(
            subject_type, str(subject_id), verify_type, except_token=except_token, conn=conn
        )


# Global instance
_token_service = None


def get_token_service() -> TokenService:
    """Get global token service instance"""
    global _token_service
    if _token_service is None:
        _token_service = TokenService()
    return _token_service
