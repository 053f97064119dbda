"""
Registration audit log model
"""

from sqlalchemy import Column, String, Text, Enum
import enum

from autoreg.models.base import BaseModel


class LogAction(str, enum.Enum):
    REGISTER = "register"
    CANCEL = "cancel"


class LogStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"


class RegistrationLog(BaseModel):
    """
    Append-only record of a registration or cancellation attempt
    """
    __tablename__ = "registration_logs"

    user_session = Column(String(255), nullable=False, index=True)
    action = Column(
        Enum(LogAction, values_callable=lambda e: [m.value for m in e], native_enum=False),
        nullable=False
    )
    course_name = Column(String(255), nullable=False, default="")
    class_code = Column(String(100), nullable=False, default="")
    status = Column(
        Enum(LogStatus, values_callable=lambda e: [m.value for m in e], native_enum=False),
        nullable=False
    )
    message = Column(Text, nullable=False, default="")

    def __repr__(self):
        return f"<RegistrationLog(id={self.id}, action={self.action}, class_code={self.class_code}, status={self.status})>"
