from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import logging

from apps_auth.services.exceptions import AuthServiceError

logger = logging.getLogger(__name__)

HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    410: "GONE",
    423: "LOCKED",
    429: "TOO_MANY_REQUESTS",
}


def error_body(code: str, message: str) -> dict:
    return {"success": False, "error": code, "message": message}


async def auth_service_exception_handler(request: Request, exc: AuthServiceError):
    """Map service errors to their status and code"""
    logger.warning(f"{exc.code} ({exc.status_code}): {exc.message} - {request.method} {request.url.path}")

    return JSONResponse(status_code=exc.status_code, content=error_body(exc.code, exc.message))


async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with structured error response"""
    logger.warning(f"HTTP {exc.status_code}: {exc.detail} - {request.url.path}")

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"), str(exc.detail)),
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors with detailed error information"""
    logger.warning(f"Validation error: {exc.errors()} - {request.url.path}")

    content = error_body("VALIDATION_ERROR", "Validation error")
    content["errors"] = [
        {"loc": list(err.get("loc", [])), "msg": err.get("msg")} for err in exc.errors()
    ]
    return JSONResponse(status_code=422, content=content)


async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions"""
    logger.error(f"Unexpected error: {str(exc)} - {request.method} {request.url.path}", exc_info=True)

    return JSONResponse(status_code=500, content=error_body("INTERNAL_ERROR", "Internal server error"))
