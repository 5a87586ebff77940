"""PushToken model - device push tokens registered by the mobile app."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime

from ..database import Base


class PushToken(Base):
    """Registered device token for push notifications."""

    __tablename__ = "push_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token = Column(String, unique=True, nullable=False, index=True)
    user_id = Column(String, nullable=True, index=True)  # NULL = anonymous/system token
    device_id = Column(String, nullable=True)
    token_type = Column(String, default="expo")  # expo, apns, fcm
    active = Column(Integer, default=1)  # 0 or 1
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
