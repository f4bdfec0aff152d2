from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import HTMLResponse
from typing import Optional

from ...auth.dependencies import bearer_token, client_ip
from ...models.auth_models import (
    ChangePasswordRequest,
    DeveloperRegisterRequest,
    EmailRequest,
    LoginRequest,
    RefreshRequest,
    TicketRedeemRequest,
    TokenPasswordRequest,
)
from ...services.developer_auth import DeveloperAuthEngine, get_developer_auth_engine
from ...services.exceptions import AuthServiceError
from ...services.sso_ticket_broker import SSOTicketBroker, get_sso_ticket_broker
from ...templates import pages
from ..schemas import SuccessResponse

router = APIRouter(prefix="/developer", tags=["developer"])


@router.post("/register", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
async def register_developer(
    body: DeveloperRegisterRequest,
    engine: DeveloperAuthEngine = Depends(get_developer_auth_engine),
):
    """Register a developer account (inactive until the email is verified)"""
    developer = await engine.register(body.email, body.username, body.name, body.password)
    return SuccessResponse(
        message="Registration successful. Please check your email to verify your account.",
        data={"user": developer.public_dict()}
    )


@router.get("/verify", response_class=HTMLResponse)
async def verify_developer(
    token: Optional[str] = None,
    engine: DeveloperAuthEngine = Depends(get_developer_auth_engine),
):
    try:
        await engine.verify_email(token)
    except AuthServiceError as e:
        return HTMLResponse(pages.message_page("Email verification", e.message, ok=False), status_code=e.status_code)
    return HTMLResponse(pages.message_page("Email verification", "Your developer account is verified. You can now sign in."))


@router.post("/resend-verification", response_model=SuccessResponse)
async def resend_verification(
    body: EmailRequest,
    engine: DeveloperAuthEngine = Depends(get_developer_auth_engine),
):
    await engine.resend_verification(body.email)
    return SuccessResponse(message="If the account needs verification, a new link has been sent")


@router.post("/login", response_model=SuccessResponse)
async def login_developer(
    request: Request,
    body: LoginRequest,
    engine: DeveloperAuthEngine = Depends(get_developer_auth_engine),
):
    result = await engine.login(
        body.email, body.password,
        ip_address=client_ip(request), user_agent=request.headers.get("User-Agent"),
    )
    return SuccessResponse(message="Login successful", data=result)


@router.post("/refresh", response_model=SuccessResponse)
async def refresh_session(
    body: RefreshRequest,
    engine: DeveloperAuthEngine = Depends(get_developer_auth_engine),
):
    result = await engine.refresh(body.refresh_token)
    return SuccessResponse(message="Token refreshed", data=result)


@router.post("/logout", response_model=SuccessResponse)
async def logout_developer(
    body: RefreshRequest,
    engine: DeveloperAuthEngine = Depends(get_developer_auth_engine),
):
    await engine.logout(body.refresh_token)
    return SuccessResponse(message="Logged out")


@router.post("/forgot-password", response_model=SuccessResponse)
async def forgot_password(
    body: EmailRequest,
    engine: DeveloperAuthEngine = Depends(get_developer_auth_engine),
):
    await engine.request_password_reset(body.email)
    return SuccessResponse(message="If an account with that email exists, a password reset link has been sent")


@router.get("/reset-password", response_class=HTMLResponse)
async def reset_password_page(
    token: Optional[str] = None,
    engine: DeveloperAuthEngine = Depends(get_developer_auth_engine),
):
    if not await engine.peek_password_reset(token):
        return HTMLResponse(
            pages.message_page("Reset password", "This link is invalid or expired.", ok=False), status_code=400
        )
    return HTMLResponse(pages.password_form_page("Reset password", token))


@router.post("/reset-password", response_model=SuccessResponse)
async def reset_password(
    body: TokenPasswordRequest,
    engine: DeveloperAuthEngine = Depends(get_developer_auth_engine),
):
    await engine.complete_password_reset(body.token, body.new_password)
    return SuccessResponse(message="Password reset successfully")


@router.post("/change-password", response_model=SuccessResponse)
async def change_password(
    request: Request,
    body: ChangePasswordRequest,
    engine: DeveloperAuthEngine = Depends(get_developer_auth_engine),
):
    await engine.change_password(bearer_token(request), body.current_password, body.new_password)
    return SuccessResponse(message="Password changed successfully. Please sign in again.")


@router.get("/me", response_model=SuccessResponse)
async def get_me(
    request: Request,
    engine: DeveloperAuthEngine = Depends(get_developer_auth_engine),
):
    developer = await engine.get_profile(bearer_token(request))
    return SuccessResponse(message="Profile retrieved", data={"user": developer.public_dict()})


@router.post("/cpanel-ticket", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
async def create_cpanel_ticket(
    request: Request,
    broker: SSOTicketBroker = Depends(get_sso_ticket_broker),
):
    """One-time URL that opens the cPanel as the calling developer"""
    result = await broker.issue(bearer_token(request))
    return SuccessResponse(message="Ticket created", data=result)


@router.post("/redeem-cpanel-ticket", response_model=SuccessResponse)
async def redeem_cpanel_ticket(
    body: TicketRedeemRequest,
    broker: SSOTicketBroker = Depends(get_sso_ticket_broker),
):
    """Called by the cPanel backend; a ticket works exactly once"""
    developer = await broker.redeem(body.token)
    return SuccessResponse(message="Ticket redeemed", data={"developer": developer})
