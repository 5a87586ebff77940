"""Database models."""
from .push_token import PushToken
from .subject import Subject
from .timetable_entry import TimetableEntry
from .user_profile import UserProfile

__all__ = ["PushToken", "Subject", "TimetableEntry", "UserProfile"]
