"""UserProfile model - per-user reminder preferences."""
from sqlalchemy import Column, Integer, String

from ..database import Base


class UserProfile(Base):
    """Preferences of a user that affect reminder content."""

    __tablename__ = "user_profiles"

    user_id = Column(String, primary_key=True)
    display_name = Column(String, nullable=True)
    minimum_attendance = Column(Integer, nullable=True)  # NULL = default threshold
