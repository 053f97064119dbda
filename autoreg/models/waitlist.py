"""
Waitlist model
"""

from sqlalchemy import Column, Integer, String, DateTime, Enum, Index
import enum

from autoreg.models.base import BaseModel


class WaitlistStatus(str, enum.Enum):
    WAITING = "waiting"
    REGISTERED = "registered"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class WaitlistEntry(BaseModel):
    """
    A persisted intent to register for a section as soon as it has room
    """
    __tablename__ = "waitlist"
    __table_args__ = (
        Index("ix_waitlist_status_priority", "status", "priority", "created_at"),
    )

    user_session = Column(String(255), nullable=False, index=True)
    course_code = Column(String(50), nullable=False)
    course_name = Column(String(255), nullable=False, default="")
    class_id = Column(String(50), nullable=False)
    class_code = Column(String(100), nullable=False, default="")
    priority = Column(Integer, nullable=False, default=1)
    status = Column(
        Enum(WaitlistStatus, values_callable=lambda e: [m.value for m in e], native_enum=False),
        default=WaitlistStatus.WAITING,
        nullable=False,
        index=True
    )
    check_interval = Column(Integer, nullable=False, default=30)
    last_checked_at = Column(DateTime(timezone=True))

    def __repr__(self):
        return f"<WaitlistEntry(id={self.id}, class_id={self.class_id}, status={self.status}, priority={self.priority})>"
