import hashlib
import logging
import secrets
from typing import Optional

import aiosqlite
import bcrypt

from apps_auth.core.config import settings
from apps_auth.db.repositories import HistoryRepository

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes
BCRYPT_MAX_BYTES = 72


class CredentialStore:
    """Hashing and generation of every secret the service stores"""

    def __init__(self, rounds: Optional[int] = None):
        self.rounds = rounds or settings.BCRYPT_ROUNDS

    @staticmethod
    def hash_secret(plaintext: str) -> str:
        """Deterministic sha256 digest for API secrets and refresh tokens"""
        return hashlib.sha256(plaintext.encode("utf-8")).hexdigest()

    def hash_password(self, password: str) -> str:
        """Hash password using bcrypt"""
        salt = bcrypt.gensalt(rounds=self.rounds)
        hashed = bcrypt.hashpw(password.encode("utf-8")[:BCRYPT_MAX_BYTES], salt)
        return hashed.decode("utf-8")

    def verify_password(self, password: str, hashed: Optional[str]) -> bool:
        """Verify password against hash; a missing or malformed hash never matches"""
        if not password or not hashed:
            return False
        try:
            return bcrypt.checkpw(password.encode("utf-8")[:BCRYPT_MAX_BYTES], hashed.encode("utf-8"))
        except ValueError:
            logger.warning("Stored password hash is malformed")
            return False

    async def record_password_history(self, subject_type: str, subject_id: str, old_hash: Optional[str],
                                      reason: Optional[str] = None,
                                      conn: Optional[aiosqlite.Connection] = None):
        """Append the replaced hash to the audit log"""
        if not old_hash:
            return
        await HistoryRepository.record_password_change(subject_type, subject_id, old_hash, reason, conn=conn)

    @staticmethod
    def generate_api_key() -> str:
        return f"ak_{secrets.token_hex(12)}"

    @staticmethod
    def generate_api_secret() -> str:
        return secrets.token_urlsafe(48)


# Global instance
_credential_store = None


def get_credential_store() -> CredentialStore:
    """Get global credential store instance"""
    global _credential_store
    if _credential_store is None:
        _credential_store = CredentialStore()
    return _credential_store
