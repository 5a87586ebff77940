"""Timetable lookups for reminder composition."""
import logging
from typing import Dict, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models import TimetableEntry
from .schedule import sort_by_start_time

logger = logging.getLogger(__name__)


class TimetableService:
    """Read-only access to users' weekly class schedules."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_classes_for_day(self, user_id: str, day: str) -> List[TimetableEntry]:
        """Classes of one user on a weekday, in chronological order.

        Returns an empty list on store errors.
        """
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(TimetableEntry)
                    .where(TimetableEntry.user_id == user_id, TimetableEntry.day == day)
                    .order_by(TimetableEntry.id)
                )
                entries = list(result.scalars().all())
        except Exception as e:
            logger.error(f"Error fetching {day} classes for user {user_id}: {e}")
            return []

        return sort_by_start_time(entries)

    async def get_users_with_classes_on(self, day: str) -> Dict[str, List[TimetableEntry]]:
        """All users having classes on a weekday, mapped to their sorted classes."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(TimetableEntry)
                    .where(TimetableEntry.day == day)
                    .order_by(TimetableEntry.user_id, TimetableEntry.id)
                )
                entries = list(result.scalars().all())
        except Exception as e:
            logger.error(f"Error fetching {day} classes: {e}")
            return {}

        by_user: Dict[str, List[TimetableEntry]] = {}
        for entry in entries:
            by_user.setdefault(entry.user_id, []).append(entry)

        users_with_classes = {}
        for user_id, user_entries in by_user.items():
            classes = sort_by_start_time(user_entries)
            if classes:
                users_with_classes[user_id] = classes
        return users_with_classes
