"""
Generic response schemas
"""

from pydantic import BaseModel, Field
from typing import Any, Optional, Dict
from datetime import datetime

from autoreg.models.base import utcnow


class ApiResponse(BaseModel):
    """Envelope shared by every endpoint: ``{success, message?, data?}``"""
    success: bool = True
    message: Optional[str] = None
    data: Optional[Any] = None


class CronResponse(ApiResponse):
    """Sweep result, stamped with the time the sweep finished"""
    timestamp: datetime = Field(default_factory=utcnow)


class ErrorResponse(BaseModel):
    """Error body rendered by the exception handlers"""
    success: bool = False
    message: str
    code: str
    details: Optional[Dict[str, Any]] = None


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    timestamp: datetime = Field(default_factory=utcnow)
    checks: Optional[Dict[str, bool]] = None
    version: Optional[str] = None
