"""
Pydantic schemas for request and response validation
"""

from autoreg.schemas.auth import LoginRequest, LoginData, NotificationSettings
from autoreg.schemas.waitlist import WaitlistCreate, WaitlistEntryResponse, WaitlistCreated
from autoreg.schemas.scheduler import (
    ScheduleCreate,
    ScheduleResponse,
    RegistrationLogResponse,
    SchedulerOverview
)
from autoreg.schemas.courses import SectionRegisterRequest, SectionCancelRequest
from autoreg.schemas.schedule import ConflictCheckRequest, ConflictCheckResponse
from autoreg.schemas.response import ApiResponse, CronResponse, ErrorResponse, HealthResponse

__all__ = [
    "LoginRequest",
    "LoginData",
    "NotificationSettings",
    "WaitlistCreate",
    "WaitlistEntryResponse",
    "WaitlistCreated",
    "ScheduleCreate",
    "ScheduleResponse",
    "RegistrationLogResponse",
    "SchedulerOverview",
    "SectionRegisterRequest",
    "SectionCancelRequest",
    "ConflictCheckRequest",
    "ConflictCheckResponse",
    "ApiResponse",
    "CronResponse",
    "ErrorResponse",
    "HealthResponse"
]
