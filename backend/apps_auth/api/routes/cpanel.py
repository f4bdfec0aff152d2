import logging

from fastapi import APIRouter, Depends, Request, Response, status
from typing import Any, Dict

from ...auth.dependencies import CPANEL_ACCESS_COOKIE, CPANEL_REFRESH_COOKIE, get_cpanel_claims
from ...core.config import settings
from ...db.repositories import DeveloperRepository
from ...models.auth_models import AppCreateRequest, SSORequest
from ...services.app_credential_gate import AppRegistry, get_app_registry
from ...services.cpanel_client import TicketRedeemClient, get_ticket_redeem_client
from ...services.exceptions import ForbiddenError, InvalidTokenError
from ...services.token_service import TokenDomain, TokenService, get_token_service
from ..schemas import SuccessResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cpanel", tags=["cpanel"])


def _set_session_cookies(response: Response, tokens: TokenService, developer: Dict[str, Any]) -> str:
    """Mint the cPanel pair and attach it as cookies; returns the access token"""
    pair = tokens.generate_pair(
        TokenDomain.CPANEL,
        {
            "developerId": developer["id"],
            "email": developer["email"],
            "name": developer.get("name") or developer.get("username") or developer["email"],
            "is_verified": bool(developer.get("email_verified", True)),
            "scope": "cpanel",
        },
        access_seconds=settings.CPANEL_ACCESS_EXPIRE_MINUTES * 60,
        refresh_seconds=settings.CPANEL_REFRESH_EXPIRE_DAYS * 86400,
    )
    cookie_options = {
        "httponly": True,
        "samesite": "none",
        "secure": settings.is_production,
        "domain": settings.CPANEL_COOKIE_DOMAIN,
        "path": "/",
    }
    response.set_cookie(CPANEL_ACCESS_COOKIE, pair.access_token, max_age=pair.access_expires_in, **cookie_options)
    response.set_cookie(CPANEL_REFRESH_COOKIE, pair.refresh_token, max_age=pair.refresh_expires_in, **cookie_options)
    return pair.access_token


@router.post("/sso", response_model=SuccessResponse)
async def consume_ticket(
    body: SSORequest,
    response: Response,
    client: TicketRedeemClient = Depends(get_ticket_redeem_client),
    tokens: TokenService = Depends(get_token_service),
):
    """Exchange a one-time ticket for a cPanel session"""
    developer = await client.redeem(body.ticket)
    access_token = _set_session_cookies(response, tokens, developer)
    logger.info(f"cPanel session established for developer {developer['id']}")
    return SuccessResponse(message="SSO established", data={"token": access_token, "developer": developer})


@router.get("/me", response_model=SuccessResponse)
async def get_me(claims: dict = Depends(get_cpanel_claims)):
    developer = await DeveloperRepository.get_by_id(claims["developerId"])
    if not developer or developer.is_blocked:
        raise ForbiddenError()
    return SuccessResponse(message="Profile retrieved", data={"developer": developer.public_dict()})


@router.post("/refresh", response_model=SuccessResponse)
async def refresh_session(
    request: Request,
    response: Response,
    tokens: TokenService = Depends(get_token_service),
):
    claims = tokens.verify(request.cookies.get(CPANEL_REFRESH_COOKIE), TokenDomain.CPANEL, refresh=True)
    developer = await DeveloperRepository.get_by_id(claims.get("developerId"))
    if not developer or developer.is_blocked or not developer.email_verified:
        raise InvalidTokenError("Invalid token")

    access_token = _set_session_cookies(response, tokens, developer.public_dict())
    return SuccessResponse(message="Session refreshed", data={"token": access_token})


@router.post("/logout", response_model=SuccessResponse)
async def logout(response: Response):
    for name in (CPANEL_ACCESS_COOKIE, CPANEL_REFRESH_COOKIE):
        response.delete_cookie(
            name,
            path="/",
            domain=settings.CPANEL_COOKIE_DOMAIN,
            secure=settings.is_production,
            httponly=True,
            samesite="none",
        )
    return SuccessResponse(message="Logged out")


@router.post("/apps", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
async def create_app(
    body: AppCreateRequest,
    claims: dict = Depends(get_cpanel_claims),
    registry: AppRegistry = Depends(get_app_registry),
):
    """Register an app; the secret is shown only in this response"""
    app, api_secret = await registry.create_app(claims["developerId"], **body.model_dump())
    data = app.public_dict()
    data["api_secret"] = api_secret
    return SuccessResponse(message="App created. Store the API secret now, it will not be shown again.", data=data)


@router.post("/apps/{app_id}/regenerate-secret", response_model=SuccessResponse)
async def regenerate_secret(
    app_id: int,
    claims: dict = Depends(get_cpanel_claims),
    registry: AppRegistry = Depends(get_app_registry),
):
    app, api_secret = await registry.regenerate_secret(claims["developerId"], app_id)
    data = app.public_dict()
    data["api_secret"] = api_secret
    return SuccessResponse(message="API secret regenerated. The previous secret no longer works.", data=data)
