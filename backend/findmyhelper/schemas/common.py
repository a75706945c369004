"""
FindMyHelper Backend — Shared API Schemas
===========================================

What:  Base model and response shapes shared by every route.
How:   ApiModel emits camelCase JSON (the contract the web and mobile
       clients use) and accepts camelCase or snake_case input. It reads
       ORM objects directly via from_attributes.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ErrorResponse(BaseModel):
    """
    Standard error response format for all API errors.

    Example:
        {
            "error": "conflict",
            "message": "Provider application has already been approved",
            "details": {"provider_id": 7, "approval_status": "approved"},
            "request_id": "a1b2c3d4"
        }
    """

    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[Dict[str, Any]] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class MessageResponse(ApiModel):
    message: str


class UploadResponse(ApiModel):
    url: str = Field(description="Public URL of the stored image")


class HealthResponse(ApiModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    storage_backend: str = Field(description="Active storage implementation: memory or database")
    storage: str = Field(description="Storage reachability: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since the process started")
