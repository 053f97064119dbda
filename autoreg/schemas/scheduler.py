"""
Scheduled registration schemas
"""

from pydantic import Field, field_validator
from typing import List, Optional, Union
from datetime import datetime

from autoreg.schemas.base import BaseSchema, IDSchema, TimestampSchema
from autoreg.schemas.waitlist import _coerce_class_id
from autoreg.models.registration_schedule import ScheduleStatus
from autoreg.models.registration_log import LogAction, LogStatus


class ScheduleCreate(BaseSchema):
    """Schedule a one-shot registration; fires now when no time is given"""
    course_code: str = Field(..., alias="courseCode", min_length=1, max_length=50)
    course_name: str = Field("", alias="courseName", max_length=255)
    class_id: Union[str, int] = Field(..., alias="classId")
    class_code: str = Field("", alias="classCode", max_length=100)
    schedule_time: Optional[datetime] = Field(None, alias="scheduleTime")
    max_retries: Optional[int] = Field(None, alias="maxRetries", ge=1, le=50)

    @field_validator("class_id", mode="before")
    @classmethod
    def validate_class_id(cls, v):
        v = _coerce_class_id(v)
        if not isinstance(v, str) or not v.strip():
            raise ValueError("classId is required")
        return v.strip()


class ScheduleResponse(IDSchema, TimestampSchema):
    course_code: str
    course_name: str
    class_id: str
    class_code: str
    schedule_time: datetime
    max_retries: int
    retry_count: int
    status: ScheduleStatus
    error_message: Optional[str] = None


class RegistrationLogResponse(IDSchema):
    action: LogAction
    course_name: str
    class_code: str
    status: LogStatus
    message: Optional[str] = None
    created_at: datetime


class SchedulerOverview(BaseSchema):
    """``GET /scheduler`` payload"""
    schedules: List[ScheduleResponse]
    logs: List[RegistrationLogResponse]
