from pydantic import BaseModel
from typing import Optional, TypeVar, Generic

T = TypeVar('T')


class SuccessResponse(BaseModel, Generic[T]):
    """Standard success response"""
    success: bool = True
    message: str = "Operation completed successfully"
    data: Optional[T] = None

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "message": "Login successful",
                "data": {"access_token": "eyJ...", "token_type": "Bearer", "expires_in": 604800}
            }
        }


class ErrorResponse(BaseModel):
    """Standard error response"""
    success: bool = False
    error: str
    message: str

    class Config:
        json_schema_extra = {
            "example": {
                "success": False,
                "error": "INVALID_CREDENTIALS",
                "message": "Invalid API key or secret"
            }
        }


class HealthResponse(BaseModel):
    """Health check response"""
    status: str = "healthy"
    service: str = "apps-auth-api"
    version: str = "1.0.0"
    timestamp: str
    database: str = "connected"
    ticket_store: str = "connected"
