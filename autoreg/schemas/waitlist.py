"""
Waitlist schemas
"""

from pydantic import Field, field_validator
from typing import Optional, Union
from datetime import datetime

from autoreg.schemas.base import BaseSchema, IDSchema, TimestampSchema
from autoreg.models.waitlist import WaitlistStatus
from autoreg.config import settings


def _coerce_class_id(v):
    # The portal hands section ids out as numbers; they are stored as text
    if isinstance(v, int) and not isinstance(v, bool):
        return str(v)
    return v


class WaitlistCreate(BaseSchema):
    """Add a section to the waitlist (camelCase accepted)"""
    course_code: str = Field(..., alias="courseCode", min_length=1, max_length=50)
    course_name: str = Field("", alias="courseName", max_length=255)
    class_id: Union[str, int] = Field(..., alias="classId")
    class_code: str = Field("", alias="classCode", max_length=100)
    priority: int = Field(default_factory=lambda: settings.WAITLIST_DEFAULT_PRIORITY, ge=0)
    check_interval: int = Field(
        default_factory=lambda: settings.WAITLIST_DEFAULT_CHECK_INTERVAL,
        alias="checkInterval",
        ge=1,
    )

    @field_validator("class_id", mode="before")
    @classmethod
    def validate_class_id(cls, v):
        v = _coerce_class_id(v)
        if not isinstance(v, str) or not v.strip():
            raise ValueError("classId is required")
        return v.strip()


class WaitlistEntryResponse(IDSchema, TimestampSchema):
    """Waitlist entry as shown to its owner"""
    course_code: str
    course_name: str
    class_id: str
    class_code: str
    priority: int
    status: WaitlistStatus
    check_interval: int
    last_checked_at: Optional[datetime] = None


class WaitlistCreated(BaseSchema):
    waitlist_id: int = Field(..., serialization_alias="waitlistId")
