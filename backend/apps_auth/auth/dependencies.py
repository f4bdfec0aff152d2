from fastapi import Depends, Header, Request
from typing import Optional

from ..services.app_credential_gate import AppContext, AppCredentialGate, get_app_credential_gate
from ..services.exceptions import InvalidTokenError
from ..services.token_service import TokenDomain, TokenService, get_token_service

CPANEL_ACCESS_COOKIE = "cpanel_access_token"
CPANEL_REFRESH_COOKIE = "cpanel_refresh_token"


def bearer_token(request: Request) -> Optional[str]:
    """Token from an 'Authorization: Bearer ...' header, if any"""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header[len("Bearer "):].strip() or None


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


async def get_app_context(
    request: Request,
    api_key: str,
    x_api_key: Optional[str] = Header(None),
    x_api_secret: Optional[str] = Header(None),
    gate: AppCredentialGate = Depends(get_app_credential_gate),
) -> AppContext:
    """
    Resolve the calling app for public API routes.

    The key comes from the path (or X-API-Key); the secret always from X-API-Secret.
    """
    return await gate.verify(
        api_key or x_api_key,
        x_api_secret,
        endpoint=request.url.path,
        method=request.method,
        ip_address=client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )


async def get_cpanel_claims(
    request: Request,
    tokens: TokenService = Depends(get_token_service),
) -> dict:
    """Claims of the cPanel session, from its cookie or a bearer header"""
    token = request.cookies.get(CPANEL_ACCESS_COOKIE) or bearer_token(request)
    claims = tokens.verify(token, TokenDomain.CPANEL)
    if claims.get("scope") != "cpanel":
        raise InvalidTokenError("Invalid token")
    return claims
