"""Attendance aggregation - overall percentage per user."""
import logging
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models import Subject, UserProfile

logger = logging.getLogger(__name__)

DEFAULT_MINIMUM_ATTENDANCE = 75


@dataclass
class AttendanceSnapshot:
    """Overall attendance of one user at a point in time."""
    user_id: str
    total_classes: int = 0
    attended_classes: int = 0
    percentage: int = 0
    minimum_required: int = DEFAULT_MINIMUM_ATTENDANCE

    @property
    def below_minimum(self) -> bool:
        return self.percentage < self.minimum_required


def calculate_percentage(total: int, attended: int) -> int:
    """Rounded attended/total percentage, 0 when there are no classes.

    Rounds half up, matching how the mobile app displays percentages.
    """
    if total <= 0:
        return 0
    return int(attended * 100 / total + 0.5)


class AttendanceService:
    """Reads subject counters and preferences to build attendance snapshots."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        default_minimum: int = DEFAULT_MINIMUM_ATTENDANCE,
    ):
        self._session_factory = session_factory
        self.default_minimum = default_minimum

    async def compute_attendance(self, user_id: str) -> AttendanceSnapshot:
        """Compute a user's overall attendance.

        Store errors are logged and produce the default snapshot, so one user's
        data problem never blocks reminders for others.
        """
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Subject.total_classes, Subject.attended_classes)
                    .where(Subject.user_id == user_id, func.coalesce(Subject.deleted, 0) == 0)
                )
                rows = result.fetchall()

                profile = await session.get(UserProfile, user_id)
        except Exception as e:
            logger.error(f"Error calculating attendance for user {user_id}: {e}")
            return AttendanceSnapshot(user_id=user_id, minimum_required=self.default_minimum)

        total = sum(row.total_classes or 0 for row in rows)
        attended = sum(row.attended_classes or 0 for row in rows)

        if attended > total:
            # Left unclamped so upstream counter bugs stay visible
            logger.warning(
                f"Attendance data inconsistent for user {user_id}: "
                f"attended={attended} > total={total}"
            )

        minimum = self.default_minimum
        if profile is not None and profile.minimum_attendance is not None:
            minimum = profile.minimum_attendance

        return AttendanceSnapshot(
            user_id=user_id,
            total_classes=total,
            attended_classes=attended,
            percentage=calculate_percentage(total, attended),
            minimum_required=minimum,
        )
