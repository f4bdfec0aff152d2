from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional


class EndUserRegisterRequest(BaseModel):
    """Request model for end-user registration"""
    email: str = Field(..., min_length=3, max_length=254, description="User's email address")
    password: str = Field(..., min_length=1, max_length=256, description="User's password")
    name: Optional[str] = Field(None, max_length=100)
    username: Optional[str] = Field(None, max_length=100)
    extra: Optional[Dict[str, Any]] = Field(None, description="Values for the app's extra fields")

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        v = v.strip().lower()
        if '@' not in v:
            raise ValueError('Invalid email address')
        return v


class LoginRequest(BaseModel):
    """Request model for email/password login"""
    email: str = Field(..., min_length=1, max_length=254)
    password: str = Field(..., min_length=1, max_length=256)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        return v.strip().lower()


class GoogleAuthRequest(BaseModel):
    id_token: str = Field(..., min_length=1, alias="idToken")

    class Config:
        populate_by_name = True


class EmailRequest(BaseModel):
    """Request carrying only an email address"""
    email: str = Field(..., min_length=1, max_length=254)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        return v.strip().lower()


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1, max_length=256)
    new_password: str = Field(..., min_length=1, max_length=256)


class TokenPasswordRequest(BaseModel):
    """Single-use token plus a new password (reset and set-password pages)"""
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1, max_length=256)


class DeleteConfirmRequest(BaseModel):
    token: str = Field(..., min_length=1)
    password: Optional[str] = Field(None, max_length=256)


class AccessTokenRequest(BaseModel):
    access_token: Optional[str] = Field(None, alias="token")

    class Config:
        populate_by_name = True


class ProfileUpdateRequest(BaseModel):
    """Profile fields an end-user may ask to change"""
    name: Optional[str] = Field(None, max_length=100)
    username: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=254)
    extra: Optional[Dict[str, Any]] = None


class DeveloperRegisterRequest(BaseModel):
    """Request model for developer registration"""
    name: str = Field(..., min_length=1, max_length=100)
    username: str = Field(..., min_length=3, max_length=50)
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=1, max_length=256)

    @field_validator('name', 'username')
    @classmethod
    def validate_not_blank(cls, v):
        if not v.strip():
            raise ValueError('Cannot be empty or whitespace only')
        return v.strip()

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        v = v.strip().lower()
        if '@' not in v:
            raise ValueError('Invalid email address')
        return v


class RefreshRequest(BaseModel):
    refresh_token: Optional[str] = Field(None, alias="refreshToken")

    class Config:
        populate_by_name = True


class TicketRedeemRequest(BaseModel):
    token: str = Field(..., min_length=1)


class SSORequest(BaseModel):
    ticket: str = Field(..., min_length=1)


class AppCreateRequest(BaseModel):
    """Request model for registering an app from the cPanel"""
    app_name: str = Field(..., min_length=1, max_length=100)
    group_id: Optional[int] = None
    support_email: Optional[str] = Field(None, max_length=254)
    allow_email_signin: bool = True
    allow_google_signin: bool = False
    google_client_id: Optional[str] = None
    extra_fields: Optional[List[str]] = None
    user_edit_permissions: Optional[Dict[str, bool]] = None
    access_token_expires_seconds: Optional[int] = Field(None, gt=0)

    @field_validator('user_edit_permissions')
    @classmethod
    def validate_permissions(cls, v):
        if v is None:
            return v
        return {k: bool(v[k]) for k in ('name', 'username', 'email') if k in v}
