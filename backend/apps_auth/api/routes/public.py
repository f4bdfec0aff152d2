from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import HTMLResponse
from typing import Optional

from ...auth.dependencies import bearer_token, client_ip, get_app_context
from ...models.auth_models import (
    AccessTokenRequest,
    ChangePasswordRequest,
    DeleteConfirmRequest,
    EmailRequest,
    EndUserRegisterRequest,
    GoogleAuthRequest,
    LoginRequest,
    ProfileUpdateRequest,
    TokenPasswordRequest,
)
from ...services.app_credential_gate import AppContext
from ...services.end_user_auth import EndUserAuthEngine, get_end_user_auth_engine
from ...services.exceptions import AuthServiceError
from ...templates import pages
from ..schemas import SuccessResponse

router = APIRouter(tags=["public"])

LINK_INVALID = "This link is invalid or expired."


# App-scoped API (key + secret required)

@router.post("/{api_key}/auth/register", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
async def register_user(
    request: Request,
    body: EndUserRegisterRequest,
    ctx: AppContext = Depends(get_app_context),
    engine: EndUserAuthEngine = Depends(get_end_user_auth_engine),
):
    """Register an end-user with email and password"""
    result = await engine.register(
        ctx, body.email, body.password, name=body.name, username=body.username, extra=body.extra,
        ip_address=client_ip(request), user_agent=request.headers.get("User-Agent"),
    )
    return SuccessResponse(message="User registered successfully. Please verify your email.", data=result)


@router.post("/{api_key}/auth/login", response_model=SuccessResponse)
async def login_user(
    request: Request,
    body: LoginRequest,
    ctx: AppContext = Depends(get_app_context),
    engine: EndUserAuthEngine = Depends(get_end_user_auth_engine),
):
    result = await engine.login(
        ctx, body.email, body.password,
        ip_address=client_ip(request), user_agent=request.headers.get("User-Agent"),
    )
    return SuccessResponse(message="Login successful", data=result)


@router.post("/{api_key}/auth/google", response_model=SuccessResponse)
async def google_auth(
    request: Request,
    body: GoogleAuthRequest,
    ctx: AppContext = Depends(get_app_context),
    engine: EndUserAuthEngine = Depends(get_end_user_auth_engine),
):
    """Sign in (or sign up) with a Google ID token"""
    result = await engine.google_auth(
        ctx, body.id_token,
        ip_address=client_ip(request), user_agent=request.headers.get("User-Agent"),
    )
    message = "Account created with Google" if result["is_new_user"] else "Login successful"
    return SuccessResponse(message=message, data=result)


@router.post("/{api_key}/auth/resend-verification", response_model=SuccessResponse)
async def resend_verification(
    body: EmailRequest,
    ctx: AppContext = Depends(get_app_context),
    engine: EndUserAuthEngine = Depends(get_end_user_auth_engine),
):
    await engine.resend_verification(ctx, body.email)
    return SuccessResponse(message="If the account needs verification, a new link has been sent")


@router.post("/{api_key}/auth/request-password-reset", response_model=SuccessResponse)
async def request_password_reset(
    body: EmailRequest,
    ctx: AppContext = Depends(get_app_context),
    engine: EndUserAuthEngine = Depends(get_end_user_auth_engine),
):
    await engine.request_password_reset(ctx, body.email)
    return SuccessResponse(message="If an account with that email exists, a password reset link has been sent")


@router.post("/{api_key}/auth/change-password", response_model=SuccessResponse)
async def change_password(
    request: Request,
    body: ChangePasswordRequest,
    ctx: AppContext = Depends(get_app_context),
    engine: EndUserAuthEngine = Depends(get_end_user_auth_engine),
):
    await engine.change_password(ctx, bearer_token(request), body.current_password, body.new_password)
    return SuccessResponse(message="Password changed successfully")


@router.post("/{api_key}/auth/delete-account", response_model=SuccessResponse)
async def delete_account(
    body: EmailRequest,
    ctx: AppContext = Depends(get_app_context),
    engine: EndUserAuthEngine = Depends(get_end_user_auth_engine),
):
    await engine.delete_account(ctx, body.email)
    return SuccessResponse(message="If an account with that email exists, a confirmation link has been sent")


@router.post("/{api_key}/auth/set-password-google-user", response_model=SuccessResponse)
async def set_password_google_user(
    body: EmailRequest,
    ctx: AppContext = Depends(get_app_context),
    engine: EndUserAuthEngine = Depends(get_end_user_auth_engine),
):
    await engine.request_set_password(ctx, body.email)
    return SuccessResponse(message="If the account can set a password, a link has been sent")


@router.post("/{api_key}/auth/verify-token", response_model=SuccessResponse)
async def verify_token(
    request: Request,
    body: Optional[AccessTokenRequest] = None,
    ctx: AppContext = Depends(get_app_context),
    engine: EndUserAuthEngine = Depends(get_end_user_auth_engine),
):
    """Introspect an end-user access token (body or bearer header)"""
    token = (body.access_token if body else None) or bearer_token(request)
    result = await engine.verify_access_token(ctx, token)
    return SuccessResponse(message="Token is valid", data=result)


@router.get("/{api_key}/user/profile", response_model=SuccessResponse)
async def get_user_profile(
    request: Request,
    ctx: AppContext = Depends(get_app_context),
    engine: EndUserAuthEngine = Depends(get_end_user_auth_engine),
):
    profile = await engine.get_profile(ctx, bearer_token(request))
    return SuccessResponse(message="Profile retrieved", data=profile)


@router.patch("/{api_key}/user/profile", response_model=SuccessResponse)
async def patch_user_profile(
    request: Request,
    body: ProfileUpdateRequest,
    ctx: AppContext = Depends(get_app_context),
    engine: EndUserAuthEngine = Depends(get_end_user_auth_engine),
):
    changes = body.model_dump(exclude_unset=True)
    result = await engine.update_profile(ctx, bearer_token(request), changes)
    message = "Profile updated"
    if result["pending_email"]:
        message = "Profile updated. Check your new email address to confirm the change."
    return SuccessResponse(message=message, data=result)


# Links opened from email (token only)

@router.get("/auth/verify-email", response_class=HTMLResponse)
async def verify_email(
    token: Optional[str] = None,
    engine: EndUserAuthEngine = Depends(get_end_user_auth_engine),
):
    try:
        await engine.verify_email(token)
    except AuthServiceError as e:
        return HTMLResponse(pages.message_page("Email verification", e.message, ok=False), status_code=e.status_code)
    return HTMLResponse(pages.message_page("Email verification", "Your email has been verified. You can now log in."))


@router.get("/auth/reset-password", response_class=HTMLResponse)
async def reset_password_page(
    token: Optional[str] = None,
    engine: EndUserAuthEngine = Depends(get_end_user_auth_engine),
):
    if not await engine.peek_password_reset(token):
        return HTMLResponse(pages.message_page("Reset password", LINK_INVALID, ok=False), status_code=400)
    return HTMLResponse(pages.password_form_page("Reset password", token))


@router.post("/auth/reset-password", response_model=SuccessResponse)
async def complete_password_reset(
    body: TokenPasswordRequest,
    engine: EndUserAuthEngine = Depends(get_end_user_auth_engine),
):
    await engine.complete_password_reset(body.token, body.new_password)
    return SuccessResponse(message="Password reset successfully")


@router.get("/auth/verify-delete-email", response_class=HTMLResponse)
async def delete_account_page(
    token: Optional[str] = None,
    engine: EndUserAuthEngine = Depends(get_end_user_auth_engine),
):
    try:
        info = await engine.describe_deletion(token)
    except AuthServiceError:
        return HTMLResponse(pages.message_page("Delete account", LINK_INVALID, ok=False), status_code=400)
    return HTMLResponse(pages.delete_confirm_page(token, info["app_name"], info["password_required"]))


@router.post("/auth/verify-delete-email", response_model=SuccessResponse)
async def confirm_account_deletion(
    body: DeleteConfirmRequest,
    engine: EndUserAuthEngine = Depends(get_end_user_auth_engine),
):
    await engine.confirm_account_deletion(body.token, body.password)
    return SuccessResponse(message="Your account has been deleted")


@router.get("/auth/verify-email-set-password-google-user", response_class=HTMLResponse)
async def set_password_page(
    token: Optional[str] = None,
    engine: EndUserAuthEngine = Depends(get_end_user_auth_engine),
):
    if not await engine.peek_set_password(token):
        return HTMLResponse(pages.message_page("Set password", LINK_INVALID, ok=False), status_code=400)
    return HTMLResponse(pages.password_form_page("Set password", token, button="Set password"))


@router.post("/auth/verify-email-set-password-google-user", response_model=SuccessResponse)
async def complete_set_password(
    body: TokenPasswordRequest,
    engine: EndUserAuthEngine = Depends(get_end_user_auth_engine),
):
    await engine.complete_set_password(body.token, body.new_password)
    return SuccessResponse(message="Password set successfully. You can now log in with email and password.")


@router.get("/user/confirm-update", response_class=HTMLResponse)
async def confirm_profile_update(
    token: Optional[str] = None,
    engine: EndUserAuthEngine = Depends(get_end_user_auth_engine),
):
    try:
        user = await engine.confirm_profile_update(token)
    except AuthServiceError as e:
        return HTMLResponse(pages.message_page("Confirm email change", e.message, ok=False), status_code=e.status_code)
    return HTMLResponse(pages.message_page("Confirm email change", f"Your email is now {user.email}."))
