"""
Authentication and settings schemas
"""

from pydantic import EmailStr, Field, field_validator
from typing import Any, Optional

from autoreg.schemas.base import BaseSchema


class LoginRequest(BaseSchema):
    """Portal credentials plus the reCAPTCHA token the portal also wants"""
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1)
    recaptcha_token: str = Field(..., alias="recaptchaToken", min_length=1)

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("username is required")
        return v


class LoginData(BaseSchema):
    user_session: str = Field(..., serialization_alias="userSession")
    student_type: Optional[Any] = Field(None, serialization_alias="studentType")


class NotificationSettings(BaseSchema):
    """An empty or missing email turns notifications off"""
    email: Optional[EmailStr] = None

    @field_validator("email", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v
