"""Subject model - per-subject class counters kept by the mobile app."""
from sqlalchemy import Column, Integer, String

from ..database import Base


class Subject(Base):
    """Attendance counters for one subject of one user."""

    __tablename__ = "subjects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    total_classes = Column(Integer, default=0)
    attended_classes = Column(Integer, default=0)
    deleted = Column(Integer, default=0)  # soft delete flag, 0 or 1
