"""
Per-student portal credentials and preferences
"""

from sqlalchemy import Column, String, Text, JSON

from autoreg.models.base import BaseModel


class UserConfig(BaseModel):
    """
    Portal session material saved at login, keyed by the owning session
    """
    __tablename__ = "user_configs"

    user_session = Column(String(255), unique=True, nullable=False, index=True)
    portal_cookies = Column(JSON, nullable=False, default=dict)
    portal_token = Column(Text, nullable=False, default="")
    notification_email = Column(String(255))

    def __repr__(self):
        return f"<UserConfig(id={self.id}, user_session={self.user_session})>"
