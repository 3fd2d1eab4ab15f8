"""
Common response schemas.
"""
from typing import Any, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar('T')


class ApiError(BaseModel):
    """API error response schema."""
    error: str = Field(..., description="Error code")
    message: str = Field(..., description="Human readable error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")


class ApiResponse(BaseModel, Generic[T]):
    """Generic API response wrapper."""
    success: bool = Field(..., description="Whether the request was successful")
    data: Optional[T] = Field(None, description="Response data")
    error: Optional[ApiError] = Field(None, description="Error information")


class HealthCheck(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Service status")
    timestamp: str = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    environment: str = Field(..., description="Environment name")


class DetailedHealthCheck(HealthCheck):
    """Health check with configured services and process info."""
    services: Dict[str, Dict[str, Any]] = Field(..., description="Service configuration status")
    application: Dict[str, Any] = Field(default_factory=dict, description="Process information")
