"""Shared fixtures: a throwaway database per test, fake mail and Google, seeded app"""

import os

# Settings are read at import time
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["MAIL_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"

import re
from typing import Dict, List, Optional, Tuple

import fakeredis
import httpx
import pytest

from apps_auth.db.database import get_db, init_db
from apps_auth.db.repositories import DeveloperRepository, PlanRepository
from apps_auth.services.app_credential_gate import AppCredentialGate, AppRegistry
from apps_auth.services.background_tasks import background_manager
from apps_auth.services.credential_store import CredentialStore
from apps_auth.services.developer_auth import DeveloperAuthEngine
from apps_auth.services.end_user_auth import EndUserAuthEngine
from apps_auth.services.exceptions import InvalidTokenError
from apps_auth.services.google_identity import GoogleIdentity
from apps_auth.services.mailer import Mailer
from apps_auth.services.sso_ticket_broker import SSOTicketBroker
from apps_auth.services.ticket_store import RedisTicketStore
from apps_auth.services.token_service import TokenService

TOKEN_IN_LINK = re.compile(r"token=([0-9a-f]{64})")

DEVELOPER_PASSWORD = "dev-password"
GOOGLE_CLIENT_ID = "client-123.apps.googleusercontent.com"


class FakeMailer(Mailer):
    """Records messages instead of sending them"""

    def __init__(self):
        super().__init__(enabled=False)
        self.sent: List[Tuple[str, str, str]] = []

    def send_in_background(self, to: str, subject: str, html: str):
        self.sent.append((to, subject, html))

    def messages_to(self, to: str) -> List[Tuple[str, str, str]]:
        return [m for m in self.sent if m[0] == to]

    def last_token(self, to: str) -> str:
        """Single-use token from the newest link mailed to an address"""
        for _, _, html in reversed(self.messages_to(to)):
            match = TOKEN_IN_LINK.search(html)
            if match:
                return match.group(1)
        raise AssertionError(f"No token mailed to {to}")


class FakeGoogleVerifier:
    """Maps ID tokens to identities; applies the same audience rule as the real verifier"""

    def __init__(self):
        self.identities: Dict[str, GoogleIdentity] = {}

    def add(self, id_token: str, sub: str, email: str, name: Optional[str] = None,
            aud: str = GOOGLE_CLIENT_ID, email_verified: bool = True) -> GoogleIdentity:
        identity = GoogleIdentity(sub=sub, email=email, email_verified=email_verified, name=name, aud=aud)
        self.identities[id_token] = identity
        return identity

    async def verify(self, id_token: str, audience: Optional[str] = None) -> GoogleIdentity:
        identity = self.identities.get(id_token)
        if not identity:
            raise InvalidTokenError("Invalid Google token")
        if audience and identity.aud != audience:
            raise InvalidTokenError("Invalid Google token")
        return identity


@pytest.fixture(autouse=True)
async def database(tmp_path):
    """Fresh SQLite file for every test"""
    db = get_db()
    original = db.db_path
    await db.set_db_path(str(tmp_path / "apps_auth_test.db"))
    await init_db()
    yield db
    await background_manager.drain()
    await db.set_db_path(original)


@pytest.fixture
def credential_store():
    return CredentialStore(rounds=4)


@pytest.fixture
def token_service():
    return TokenService()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def google():
    return FakeGoogleVerifier()


@pytest.fixture
async def ticket_store():
    store = RedisTicketStore(client=fakeredis.FakeAsyncRedis(decode_responses=True))
    await store.connect()
    yield store
    await store.close()


@pytest.fixture
async def developer(credential_store):
    """Verified developer with an active plan"""
    dev = await DeveloperRepository.create(
        email="dev@example.com",
        username="devone",
        name="Dev One",
        password_hash=credential_store.hash_password(DEVELOPER_PASSWORD),
    )
    await DeveloperRepository.mark_verified(dev.id)
    await PlanRepository.create(dev.id, "starter")
    return await DeveloperRepository.get_by_id(dev.id)


@pytest.fixture
def registry(credential_store):
    return AppRegistry(credential_store)


@pytest.fixture
def gate(credential_store):
    return AppCredentialGate(credential_store)


@pytest.fixture
async def app_credentials(developer, registry):
    """(app, plaintext secret) for an app with both sign-in methods enabled"""
    return await registry.create_app(
        developer.id,
        "Test App",
        allow_email_signin=True,
        allow_google_signin=True,
        google_client_id=GOOGLE_CLIENT_ID,
        extra_fields=["company"],
        user_edit_permissions={"name": True, "username": True, "email": True},
    )


@pytest.fixture
async def ctx(app_credentials, gate):
    app, secret = app_credentials
    return await gate.verify(app.api_key, secret)


@pytest.fixture
def end_user_engine(credential_store, token_service, google, mailer):
    return EndUserAuthEngine(
        credential_store=credential_store,
        token_service=token_service,
        google_verifier=google,
        mailer=mailer,
    )


@pytest.fixture
def developer_engine(credential_store, token_service, mailer):
    return DeveloperAuthEngine(credential_store=credential_store, token_service=token_service, mailer=mailer)


@pytest.fixture
def broker(token_service, ticket_store):
    return SSOTicketBroker(token_service=token_service, store=ticket_store)


@pytest.fixture
async def verified_user(ctx, end_user_engine, mailer):
    """Registered end-user whose email is verified; password is 'user-password'"""
    result = await end_user_engine.register(ctx, "user@example.com", "user-password", name="User One")
    await end_user_engine.verify_email(mailer.last_token("user@example.com"))
    return result["user"]


@pytest.fixture
async def client(end_user_engine, developer_engine, broker, registry, token_service, ticket_store):
    """HTTP client bound to the ASGI app with the test doubles wired in"""
    from apps_auth.main import app
    from apps_auth.services.app_credential_gate import get_app_credential_gate, get_app_registry
    from apps_auth.services.cpanel_client import TicketRedeemClient, get_ticket_redeem_client
    from apps_auth.services.developer_auth import get_developer_auth_engine
    from apps_auth.services.end_user_auth import get_end_user_auth_engine
    from apps_auth.services.sso_ticket_broker import get_sso_ticket_broker
    from apps_auth.services.ticket_store import get_ticket_store
    from apps_auth.services.token_service import get_token_service

    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    redeem_client = TicketRedeemClient(base_url="http://test", max_retries=0, transport=transport)

    app.dependency_overrides[get_end_user_auth_engine] = lambda: end_user_engine
    app.dependency_overrides[get_developer_auth_engine] = lambda: developer_engine
    app.dependency_overrides[get_sso_ticket_broker] = lambda: broker
    app.dependency_overrides[get_app_registry] = lambda: registry
    app.dependency_overrides[get_app_credential_gate] = lambda: AppCredentialGate(registry.credential_store)
    app.dependency_overrides[get_token_service] = lambda: token_service
    app.dependency_overrides[get_ticket_redeem_client] = lambda: redeem_client
    app.dependency_overrides[get_ticket_store] = lambda: ticket_store

    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http

    app.dependency_overrides.clear()
