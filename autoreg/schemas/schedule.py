"""
Timetable conflict check schemas
"""

from pydantic import Field
from typing import List, Optional

from autoreg.schemas.base import BaseSchema


class ClassScheduleInput(BaseSchema):
    """A section and its raw portal schedule text, e.g. ``Thứ 2 (1-3), T4 (7-9)``"""
    class_code: str = Field(..., alias="classCode", min_length=1)
    course_name: str = Field("", alias="courseName")
    schedule: Optional[str] = None


class ConflictCheckRequest(BaseSchema):
    candidate: ClassScheduleInput
    existing: List[ClassScheduleInput] = Field(default_factory=list)


class ConflictSlot(BaseSchema):
    day: int
    periods: List[int]


class ConflictResult(BaseSchema):
    class_code: str
    course_name: str
    conflicting_slots: List[ConflictSlot]
    message: str


class ConflictCheckResponse(BaseSchema):
    has_conflict: bool
    conflicts: List[ConflictResult]
