"""
Invoicerr Backend — Shared Schemas
====================================

What:  Error, health and small acknowledgement models used by every router.
Why:   Clients parse one error shape everywhere; handlers in main.py build it.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error body for all API errors.

    Example:
        {
            "error": "not_found",
            "message": "Invoice not found",
            "details": {"resource": "Invoice", "resource_id": "..."},
            "request_id": "550e8400-e29b-41d4-a716-446655440000"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")


class MessageResponse(BaseModel):
    message: str


class SuccessResponse(BaseModel):
    success: bool
    message: Optional[str] = None


class PluginWebhookResponse(BaseModel):
    success: bool
    message: str
    data: Optional[Any] = None
    error: Optional[str] = None


# Reusable `responses=` fragments for route decorators
ERRORS_AUTH = {
    401: {"model": ErrorResponse, "description": "Missing or invalid session"},
    403: {"model": ErrorResponse, "description": "Insufficient role for this company"},
}
ERRORS_COMMON = {
    400: {"model": ErrorResponse, "description": "Business rule violated"},
    **ERRORS_AUTH,
    404: {"model": ErrorResponse, "description": "Resource not found in this company"},
}
