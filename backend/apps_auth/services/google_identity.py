"""
Google ID token verification and end-user identity resolution
"""
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import aiosqlite
import httpx

from apps_auth.core.config import settings
from apps_auth.db.repositories import EndUserRepository
from apps_auth.models.end_user import EndUser
from .exceptions import InvalidTokenError, ValidationFailedError

logger = logging.getLogger(__name__)


@dataclass
class GoogleIdentity:
    sub: str
    email: str
    email_verified: bool
    name: Optional[str] = None
    aud: Optional[str] = None


class GoogleTokenVerifier:
    """Validates ID tokens against Google's tokeninfo endpoint"""

    def __init__(self, tokeninfo_url: Optional[str] = None, timeout: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.tokeninfo_url = tokeninfo_url or settings.GOOGLE_TOKENINFO_URL
        self.timeout = timeout or settings.GOOGLE_TIMEOUT_SECONDS
        self.transport = transport

    async def verify(self, id_token: str, audience: Optional[str] = None) -> GoogleIdentity:
        """Return the identity in the token, or raise InvalidTokenError"""
        if not id_token:
            raise ValidationFailedError("Google ID token is required")

        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout), transport=self.transport) as client:
                response = await client.get(self.tokeninfo_url, params={"id_token": id_token})
        except httpx.HTTPError as e:
            logger.error(f"Google tokeninfo request failed: {e}")
            raise InvalidTokenError("Invalid Google token")

        if response.status_code != 200:
            raise InvalidTokenError("Invalid Google token")

        info = response.json()
        if not info.get("sub") or not info.get("email"):
            raise InvalidTokenError("Invalid Google token")

        if audience and info.get("aud") != audience:
            logger.warning("Google token audience does not match the configured client id")
            raise InvalidTokenError("Invalid Google token")

        return GoogleIdentity(
            sub=info["sub"],
            email=info["email"].lower(),
            email_verified=str(info.get("email_verified", "")).lower() == "true",
            name=info.get("name"),
            aud=info.get("aud"),
        )


async def resolve_or_link_google_identity(app_id: int, identity: GoogleIdentity) -> Tuple[EndUser, bool]:
    """
    Find the app's user for a Google identity.

    Known google_id logs in. Past that point Google must vouch for the email:
    an existing email without a google_id is linked (and counts as verified),
    otherwise a verified Google-only user is created.
    Returns (user, is_new_user).
    """
    user = await EndUserRepository.get_by_google_id(app_id, identity.sub)
    if user:
        return user, False

    if not identity.email_verified:
        logger.warning(f"Rejected Google identity with unverified email for app {app_id}")
        raise InvalidTokenError("Google account email is not verified")

    user = await EndUserRepository.get_by_email(app_id, identity.email)
    if user:
        if not user.google_id:
            await EndUserRepository.link_google(user.id, identity.sub)
            logger.info(f"Linked Google identity to end-user {user.id}")
            user = await EndUserRepository.get_by_id(user.id)
        return user, False

    try:
        user = await EndUserRepository.create(
            app_id=app_id,
            email=identity.email,
            name=identity.name,
            google_id=identity.sub,
            google_linked=True,
            email_verified=True,
        )
    except aiosqlite.IntegrityError:
        # A concurrent sign-in created the row first
        user = await EndUserRepository.get_by_email(app_id, identity.email)
        if not user:
            raise
        return user, False
    logger.info(f"Created Google end-user {user.id} for app {app_id}")
    return user, True


# Global instance
_google_verifier = None


def get_google_verifier() -> GoogleTokenVerifier:
    global _google_verifier
    if _google_verifier is None:
        _google_verifier = GoogleTokenVerifier()
    return _google_verifier
