"""TimetableEntry model - weekly class schedule of a user."""
from sqlalchemy import Column, Integer, String

from ..database import Base


class TimetableEntry(Base):
    """One weekly class slot."""

    __tablename__ = "timetable_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    day = Column(String, nullable=False)  # Monday ... Sunday
    start_time = Column(String, nullable=False)  # "09:00 AM"
    end_time = Column(String, nullable=True)
    subject = Column(String, nullable=False)
    class_type = Column(String, default="lecture")  # lecture, lab, tutorial, practical, seminar
