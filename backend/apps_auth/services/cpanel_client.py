"""
Client the cPanel side uses to redeem SSO tickets against the developer backend
"""
import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from apps_auth.core.config import settings
from .exceptions import AuthServiceError, TicketRedeemError

logger = logging.getLogger(__name__)


class TicketRedeemClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.AUTH_API_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.REDEEM_TIMEOUT_SECONDS
        self.max_retries = settings.REDEEM_MAX_RETRIES if max_retries is None else max_retries
        self.backoff = settings.REDEEM_RETRY_BACKOFF_SECONDS if backoff is None else backoff
        self.transport = transport

    @property
    def redeem_url(self) -> str:
        return f"{self.base_url}{settings.API_V1_STR}/developer/redeem-cpanel-ticket"

    async def redeem(self, ticket: str) -> Dict[str, Any]:
        """Return the developer profile for a ticket; 4xx answers are final, others are retried"""
        attempts = self.max_retries + 1
        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout), transport=self.transport) as client:
            for attempt in range(attempts):
                try:
                    response = await client.post(self.redeem_url, json={"token": ticket})
                except httpx.TransportError as e:
                    logger.warning(f"Ticket redeem attempt {attempt + 1}/{attempts} failed: {e}")
                else:
                    if response.status_code < 500:
                        return self._parse(response)
                    logger.warning(
                        f"Ticket redeem attempt {attempt + 1}/{attempts} got HTTP {response.status_code}"
                    )

                if attempt < attempts - 1:
                    await asyncio.sleep(self.backoff * (2 ** attempt))

        raise AuthServiceError("Ticket redemption unavailable", status_code=502, code="TICKET_REDEEM_UNAVAILABLE")

    @staticmethod
    def _parse(response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code != 200 or not body.get("success"):
            raise TicketRedeemError(body.get("message") or "Ticket redemption failed", status_code=401)

        developer = (body.get("data") or {}).get("developer")
        if not developer:
            raise AuthServiceError("Developer info missing from redeem response", status_code=502,
                                   code="NO_DEVELOPER_INFO")
        return developer


# Global instance
_client = None


def get_ticket_redeem_client() -> TicketRedeemClient:
    global _client
    if _client is None:
        _client = TicketRedeemClient()
    return _client
