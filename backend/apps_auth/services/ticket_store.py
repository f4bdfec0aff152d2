"""
Ephemeral key/value store for SSO tickets, backed by Redis

The contract is set-if-absent with a TTL, and an atomic get-and-delete, so a
ticket issued by any worker can be redeemed by any other exactly once.
"""
import logging
from typing import Optional

import redis.asyncio as redis

from apps_auth.core.config import settings

logger = logging.getLogger(__name__)


class RedisTicketStore:
    def __init__(self, client: Optional[redis.Redis] = None, url: Optional[str] = None):
        self.url = url or settings.REDIS_URL
        self.client = client

    async def connect(self):
        if self.client is None:
            self.client = redis.from_url(self.url, decode_responses=True)
        await self.client.ping()
        logger.info("Ticket store connected to Redis")

    async def close(self):
        if self.client is not None:
            await self.client.aclose()
            self.client = None

    async def ping(self) -> bool:
        if self.client is None:
            return False
        try:
            return bool(await self.client.ping())
        except redis.RedisError as e:
            logger.error(f"Redis ping failed: {e}")
            return False

    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        return bool(await self.client.set(key, value, nx=True, ex=ttl_seconds))

    async def get_and_delete(self, key: str) -> Optional[str]:
        return await self.client.getdel(key)


# Global instance
_ticket_store = None


def get_ticket_store() -> RedisTicketStore:
    global _ticket_store
    if _ticket_store is None:
        _ticket_store = RedisTicketStore()
    return _ticket_store
