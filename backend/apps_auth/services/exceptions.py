"""
Exceptions raised by the auth services

Each carries a machine-readable code and the HTTP status the API layer answers with.
"""


class AuthServiceError(Exception):
    """Base exception for auth services"""
    code = "AUTH_ERROR"
    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: str = None, status_code: int = None, code: str = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        super().__init__(self.message)


class MissingCredentialsError(AuthServiceError):
    """Raised when the API key or secret is absent"""
    code = "MISSING_CREDENTIALS"
    status_code = 401
    default_message = "API key and secret are required"


class InvalidCredentialsError(AuthServiceError):
    """Raised for any wrong key/secret or email/password combination"""
    code = "INVALID_CREDENTIALS"
    status_code = 401
    default_message = "Invalid credentials"


class FeatureDisabledError(AuthServiceError):
    """Raised when the app has switched off a sign-in method"""
    code = "FEATURE_DISABLED"
    status_code = 403
    default_message = "This sign-in method is disabled for this app"


class AccountBlockedError(AuthServiceError):
    code = "ACCOUNT_BLOCKED"
    status_code = 403
    default_message = "Account is blocked"


class AccountNotVerifiedError(AuthServiceError):
    code = "ACCOUNT_NOT_VERIFIED"
    status_code = 403
    default_message = "Please verify your email before logging in"


class AccountLockedError(AuthServiceError):
    """Raised while a developer account is locked after repeated failures"""
    code = "ACCOUNT_LOCKED"
    status_code = 423
    default_message = "Account locked due to too many failed login attempts"


class EmailExistsError(AuthServiceError):
    code = "EMAIL_EXISTS"
    status_code = 409
    default_message = "Email already registered"


class UseGoogleSignInError(AuthServiceError):
    """Raised when a Google-only account tries a password flow"""
    code = "USE_GOOGLE_SIGNIN"
    status_code = 409
    default_message = "This account uses Google Sign-In"


class InvalidTokenError(AuthServiceError):
    """Raised for any token that fails verification"""
    code = "INVALID_TOKEN"
    status_code = 401
    default_message = "Invalid token"


class PlanInactiveError(AuthServiceError):
    code = "PLAN_INACTIVE"
    status_code = 403
    default_message = "No active plan for this app's developer"


class TicketRedeemError(AuthServiceError):
    """Raised when an SSO ticket is missing, expired or already used"""
    code = "TICKET_REDEEM_FAILED"
    status_code = 410
    default_message = "Ticket is invalid or expired"


class TicketCreateError(AuthServiceError):
    code = "TICKET_CREATE_FAILED"
    status_code = 500
    default_message = "Could not create ticket"


class ForbiddenError(AuthServiceError):
    code = "FORBIDDEN"
    status_code = 403
    default_message = "Forbidden"


class ValidationFailedError(AuthServiceError):
    code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Invalid input"


class NotFoundError(AuthServiceError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Not found"
