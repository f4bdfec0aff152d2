from .exceptions import AuthServiceError
from .credential_store import CredentialStore, get_credential_store
from .token_service import TokenDomain, TokenPair, TokenService, get_token_service
from .app_credential_gate import AppContext, AppCredentialGate, AppRegistry, get_app_credential_gate, get_app_registry
from .google_identity import GoogleIdentity, GoogleTokenVerifier, get_google_verifier
from .mailer import Mailer, get_mailer
from .ticket_store import RedisTicketStore, get_ticket_store
from .sso_ticket_broker import SSOTicketBroker, get_sso_ticket_broker
from .cpanel_client import TicketRedeemClient, get_ticket_redeem_client
from .end_user_auth import EndUserAuthEngine, get_end_user_auth_engine
from .developer_auth import DeveloperAuthEngine, get_developer_auth_engine

__all__ = [
    "AuthServiceError",
    "CredentialStore",
    "get_credential_store",
    "TokenDomain",
    "TokenPair",
    "TokenService",
    "get_token_service",
    "AppContext",
    "AppCredentialGate",
    "AppRegistry",
    "get_app_credential_gate",
    "get_app_registry",
    "GoogleIdentity",
    "GoogleTokenVerifier",
    "get_google_verifier",
    "Mailer",
    "get_mailer",
    "RedisTicketStore",
    "get_ticket_store",
    "SSOTicketBroker",
    "get_sso_ticket_broker",
    "TicketRedeemClient",
    "get_ticket_redeem_client",
    "EndUserAuthEngine",
    "get_end_user_auth_engine",
    "DeveloperAuthEngine",
    "get_developer_auth_engine",
]
