"""Dispatch engine - orchestrates reminder composition, delivery and token cleanup.

Delivery policy:
- Each send is a single multicast over a user's tokens (or all tokens for a
  broadcast); failed sends are counted, not retried.
- Tokens the transport reports as permanently invalid are deleted after every
  batch.
- A failure for one user is logged and skipped; the loop carries on with the
  remaining users.
- Orchestration entry points never raise: unexpected errors become a
  ``DispatchResult`` with ``success=False``.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

from .attendance import AttendanceService
from .composer import broadcast_message, compose_class_reminder, compose_daily_message
from .payload import NotificationMessage
from .push_sender import PushTransport
from .schedule import InvalidTimeFormat, is_starting_soon, today_day_name, tomorrow_day_name
from .timetable import TimetableService
from .token_store import TokenStore

logger = logging.getLogger(__name__)

NO_TOKENS_FOR_USER = "No push tokens found for user"
NO_TOKENS = "No push tokens found"
NO_DELIVERABLE_TOKENS = "No deliverable push tokens"


@dataclass
class DispatchResult:
    """Aggregated outcome of one dispatch call."""
    success: bool
    attempted: int = 0
    sent: int = 0
    failed: int = 0
    invalid_tokens_removed: int = 0
    unsupported_tokens: int = 0
    user_id: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None
    minutes_before: Optional[int] = None
    total_users: Optional[int] = None
    skipped_tokens: Optional[int] = None
    failed_users: Optional[List[str]] = None
    details: Optional[List["DispatchResult"]] = None

    def add(self, other: "DispatchResult"):
        """Fold another result's counts into this one."""
        self.attempted += other.attempted
        self.sent += other.sent
        self.failed += other.failed
        self.invalid_tokens_removed += other.invalid_tokens_removed
        self.unsupported_tokens += other.unsupported_tokens

    def to_dict(self) -> dict:
        data = {
            "success": self.success,
            "attempted": self.attempted,
            "sent": self.sent,
            "failed": self.failed,
            "invalidTokensRemoved": self.invalid_tokens_removed,
        }
        optional = {
            "userId": self.user_id,
            "message": self.message,
            "error": self.error,
            "minutesBefore": self.minutes_before,
            "totalUsers": self.total_users,
            "skippedTokens": self.skipped_tokens,
            "failedUsers": self.failed_users,
        }
        data.update({key: value for key, value in optional.items() if value is not None})
        if self.unsupported_tokens:
            data["unsupportedTokens"] = self.unsupported_tokens
        if self.details is not None:
            data["details"] = [detail.to_dict() for detail in self.details]
        return data


class DispatchEngine:
    """Sends reminder and ad-hoc notifications to users' devices."""

    def __init__(
        self,
        token_store: TokenStore,
        transport: PushTransport,
        attendance: AttendanceService,
        timetable: TimetableService,
        timezone=None,
        user_delay_seconds: float = 0.1,
    ):
        self.token_store = token_store
        self.transport = transport
        self.attendance = attendance
        self.timetable = timetable
        self.timezone = timezone
        self.user_delay_seconds = user_delay_seconds

    async def compose_daily_reminder(
        self,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> NotificationMessage:
        """Personalized message about tomorrow's classes and attendance."""
        day = tomorrow_day_name(self.timezone, now=now)
        classes = await self.timetable.get_classes_for_day(user_id, day)
        attendance = await self.attendance.compute_attendance(user_id)
        return compose_daily_message(classes, attendance)

    async def _deliver(
        self,
        tokens: Sequence[str],
        message: NotificationMessage,
        user_id: Optional[str] = None,
    ) -> DispatchResult:
        """Multicast one message and clean up invalid tokens.

        Tokens no configured transport can deliver to are left out of the
        attempt and counted in ``unsupported_tokens``.
        """
        target = f"user {user_id}" if user_id else "all devices"
        deliverable = [token for token in tokens if self.transport.supports(token)]
        unsupported = len(tokens) - len(deliverable)
        if unsupported:
            logger.warning(f"Skipping {unsupported} tokens with no configured transport for {target}")

        if not deliverable:
            return DispatchResult(
                success=False,
                unsupported_tokens=unsupported,
                user_id=user_id,
                message=NO_DELIVERABLE_TOKENS,
            )

        results = await self.transport.send_multicast(deliverable, message)
        sent = sum(1 for r in results if r.ok)
        failed = len(results) - sent

        removed = 0
        if any(r.invalid for r in results):
            removed = await self.token_store.cleanup_invalid(deliverable, results)

        logger.info(
            f"Sent to {target}: {sent} successful, {failed} failed, "
            f"{removed} invalid tokens removed"
        )

        return DispatchResult(
            success=True,
            attempted=len(deliverable),
            sent=sent,
            failed=failed,
            invalid_tokens_removed=removed,
            unsupported_tokens=unsupported,
            user_id=user_id,
        )

    async def send_to_user(
        self,
        user_id: str,
        message: Optional[NotificationMessage] = None,
    ) -> DispatchResult:
        """Send a message (or the personalized daily reminder) to one user's devices."""
        try:
            records = await self.token_store.get_user_tokens(user_id)
            if not records:
                return DispatchResult(success=False, user_id=user_id, message=NO_TOKENS_FOR_USER)

            if message is None:
                message = await self.compose_daily_reminder(user_id)

            return await self._deliver([r.token for r in records], message, user_id)
        except Exception as e:
            logger.error(f"Error sending notification to user {user_id}: {e}")
            return DispatchResult(success=False, user_id=user_id, error=str(e))

    async def send_to_all_users(
        self,
        message: Optional[NotificationMessage] = None,
    ) -> DispatchResult:
        """Broadcast one message to every registered token."""
        try:
            records = await self.token_store.get_all_tokens()
            if not records:
                return DispatchResult(success=False, message=NO_TOKENS)

            result = await self._deliver([r.token for r in records], message or broadcast_message())
            result.total_users = len({r.user_id for r in records if r.user_id})
            return result
        except Exception as e:
            logger.error(f"Error sending notifications to all users: {e}")
            return DispatchResult(success=False, error=str(e))

    async def send_daily_reminders(self, now: Optional[datetime] = None) -> DispatchResult:
        """Send each user a personalized reminder about tomorrow.

        Users whose composition or delivery raises are listed in
        ``failed_users`` and left out of ``details``.
        """
        logger.info("Starting daily reminder notifications")
        try:
            grouped, skipped = await self.token_store.get_tokens_by_user()
        except Exception as e:
            logger.error(f"Error sending daily reminders: {e}")
            return DispatchResult(success=False, error=str(e))

        summary = DispatchResult(
            success=True,
            total_users=len(grouped),
            skipped_tokens=skipped,
            failed_users=[],
            details=[],
        )

        if not grouped:
            summary.message = "No users to send reminders to"
            logger.info(summary.message)
            return summary

        for position, (user_id, records) in enumerate(grouped.items()):
            if position and self.user_delay_seconds > 0:
                await asyncio.sleep(self.user_delay_seconds)

            try:
                message = await self.compose_daily_reminder(user_id, now=now)
                result = await self._deliver([r.token for r in records], message, user_id)
            except Exception as e:
                logger.error(f"Daily reminder failed for user {user_id}: {e}")
                summary.failed_users.append(user_id)
                continue

            summary.details.append(result)
            summary.add(result)

        logger.info(
            f"Daily reminders completed: {summary.sent} sent, {summary.failed} failed, "
            f"{len(summary.failed_users)} users failed"
        )
        return summary

    async def send_class_reminders(
        self,
        minutes_before: int,
        now: Optional[datetime] = None,
    ) -> DispatchResult:
        """Remind users about classes starting in minutes_before minutes (+/-1)."""
        if minutes_before <= 0:
            return DispatchResult(success=False, error="minutes_before must be a positive integer")

        logger.info(f"Checking for classes starting in {minutes_before} minutes")
        try:
            day = today_day_name(self.timezone, now=now)
            users_with_classes = await self.timetable.get_users_with_classes_on(day)
        except Exception as e:
            logger.error(f"Error sending {minutes_before}-min reminders: {e}")
            return DispatchResult(success=False, minutes_before=minutes_before, error=str(e))

        summary = DispatchResult(
            success=True,
            minutes_before=minutes_before,
            failed_users=[],
            details=[],
        )

        for user_id, classes in users_with_classes.items():
            try:
                upcoming = []
                for entry in classes:
                    try:
                        if is_starting_soon(entry.start_time, minutes_before, now=now, tz=self.timezone):
                            upcoming.append(entry)
                    except InvalidTimeFormat:
                        logger.warning(f"Skipping class with malformed start time for user {user_id}")

                if not upcoming:
                    continue

                attendance = await self.attendance.compute_attendance(user_id)

                for entry in upcoming:
                    message = compose_class_reminder(entry, minutes_before, attendance)
                    result = await self.send_to_user(user_id, message)
                    summary.details.append(result)
                    summary.add(result)
                    logger.info(
                        f"Sent {minutes_before}-min reminder to user {user_id} for {entry.subject}"
                    )
            except Exception as e:
                logger.error(f"Class reminder failed for user {user_id}: {e}")
                summary.failed_users.append(user_id)

        summary.total_users = len({d.user_id for d in summary.details})
        logger.info(
            f"{minutes_before}-min reminders completed: {summary.sent} sent, {summary.failed} failed"
        )
        return summary
