"""
Manual section registration schemas
"""

from pydantic import Field
from typing import Optional

from autoreg.schemas.base import BaseSchema


class SectionRegisterRequest(BaseSchema):
    """
    Register the student into one section. ``is_bulk`` skips the reCAPTCHA
    requirement for registrations submitted as a batch from the course list.
    """
    class_id: int = Field(..., alias="idLopHocPhan", gt=0)
    recaptcha_token: str = Field("", alias="recaptchaToken")
    course_name: str = Field("", alias="courseName")
    class_code: str = Field("", alias="classCode")
    is_bulk: bool = Field(False, alias="isBulk")


class SectionCancelRequest(BaseSchema):
    registration_id: int = Field(..., alias="idDangKy", gt=0)
    course_name: str = Field("", alias="courseName")
    class_code: str = Field("", alias="classCode")
    recaptcha_token: Optional[str] = Field(None, alias="recaptchaToken")
