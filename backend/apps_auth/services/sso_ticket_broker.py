import json
import logging
import uuid
from typing import Any, Dict, Optional

from apps_auth.core.config import settings
from apps_auth.db.repositories import DeveloperRepository
from apps_auth.models.developer import Developer
from .exceptions import ForbiddenError, InvalidTokenError, TicketCreateError, TicketRedeemError
from .ticket_store import get_ticket_store
from .token_service import TokenDomain, TokenService, get_token_service

logger = logging.getLogger(__name__)

TICKET_PREFIX = "cpanel:ticket:"


class SSOTicketBroker:
    """Exchanges a developer session for a one-time cPanel ticket and back"""

    def __init__(self, token_service: Optional[TokenService] = None, store=None,
                 ttl_seconds: Optional[int] = None):
        self.token_service = token_service or get_token_service()
        self.store = store or get_ticket_store()
        self.ttl_seconds = ttl_seconds or settings.CPANEL_TICKET_TTL_SECONDS

    @staticmethod
    def _check_developer(developer: Optional[Developer]) -> Developer:
        if not developer or developer.is_blocked or not developer.email_verified:
            raise ForbiddenError()
        return developer

    async def issue(self, access_token: Optional[str]) -> Dict[str, Any]:
        """Mint a ticket for the developer behind access_token"""
        claims = self.token_service.verify(access_token, TokenDomain.DEVELOPER)
        if claims.get("role") != "developer" or not claims.get("userId"):
            raise InvalidTokenError("Invalid access token")

        developer = self._check_developer(await DeveloperRepository.get_by_id(claims["userId"]))

        ticket = str(uuid.uuid4())
        stored = await self.store.set_if_absent(
            f"{TICKET_PREFIX}{ticket}",
            json.dumps({"developerId": developer.id}),
            self.ttl_seconds,
        )
        if not stored:
            raise TicketCreateError()

        logger.info(f"Issued cPanel ticket for developer {developer.id}")
        return {
            "url": f"{settings.CPANEL_URL.rstrip('/')}/sso/{ticket}",
            "expiresIn": self.ttl_seconds,
        }

    async def redeem(self, ticket: Optional[str]) -> Dict[str, Any]:
        """Consume a ticket exactly once and return the developer's public profile"""
        if not ticket:
            raise TicketRedeemError("Missing ticket", status_code=400)

        raw = await self.store.get_and_delete(f"{TICKET_PREFIX}{ticket}")
        if not raw:
            raise TicketRedeemError()

        developer_id = json.loads(raw)["developerId"]
        developer = self._check_developer(await DeveloperRepository.get_by_id(developer_id))
        logger.info(f"Redeemed cPanel ticket for developer {developer.id}")
        return developer.public_dict()


# Global instance
_broker = None


def get_sso_ticket_broker() -> SSOTicketBroker:
    global _broker
    if _broker is None:
        _broker = SSOTicketBroker()
    return _broker
