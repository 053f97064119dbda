"""
Scheduled (one-shot) registration model
"""

from sqlalchemy import Column, Integer, String, DateTime, Enum, Text, CheckConstraint
import enum

from autoreg.models.base import BaseModel


class ScheduleStatus(str, enum.Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ScheduledRegistration(BaseModel):
    """
    Registration attempt that fires once at or after ``schedule_time``,
    retried on later polls until ``max_retries`` is reached
    """
    __tablename__ = "registration_schedules"
    __table_args__ = (
        CheckConstraint("retry_count <= max_retries", name="ck_schedule_retry_bound"),
    )

    user_session = Column(String(255), nullable=False, index=True)
    course_code = Column(String(50), nullable=False)
    course_name = Column(String(255), nullable=False, default="")
    class_id = Column(String(50), nullable=False)
    class_code = Column(String(100), nullable=False, default="")
    schedule_time = Column(DateTime(timezone=True), nullable=False, index=True)
    max_retries = Column(Integer, nullable=False, default=5)
    retry_count = Column(Integer, nullable=False, default=0)
    status = Column(
        Enum(ScheduleStatus, values_callable=lambda e: [m.value for m in e], native_enum=False),
        default=ScheduleStatus.PENDING,
        nullable=False,
        index=True
    )
    error_message = Column(Text)

    def __repr__(self):
        return (
            f"<ScheduledRegistration(id={self.id}, class_id={self.class_id}, status={self.status}, "
            f"attempts={self.retry_count}/{self.max_retries})>"
        )
