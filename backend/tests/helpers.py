"""Shared test helpers: a fake push transport and database seeding."""
from typing import List, Optional, Sequence, Set
from zoneinfo import ZoneInfo

from notifier.database import Database
from notifier.models import PushToken, Subject, TimetableEntry, UserProfile
from notifier.services.push_sender import PushTransport, SendResult

IST = ZoneInfo("Asia/Kolkata")


def expo_token(name: str) -> str:
    return f"ExponentPushToken[{name}-xxxxxxxxxxxxxxxx]"


class FakeTransport(PushTransport):
    """Records every multicast and answers per token from configured sets."""

    name = "fake"

    def __init__(
        self,
        invalid: Optional[Set[str]] = None,
        failing: Optional[Set[str]] = None,
        raise_error: Optional[Exception] = None,
    ):
        self.invalid = invalid or set()
        self.failing = failing or set()
        self.raise_error = raise_error
        self.calls: List[tuple] = []
        self.closed = False

    async def send_multicast(self, tokens: Sequence[str], message) -> List[SendResult]:
        self.calls.append((list(tokens), message))
        if self.raise_error:
            raise self.raise_error

        results = []
        for token in tokens:
            if token in self.invalid:
                results.append(SendResult(token=token, ok=False, error="DeviceNotRegistered", invalid=True))
            elif token in self.failing:
                results.append(SendResult(token=token, ok=False, error="MessageRateExceeded"))
            else:
                results.append(SendResult(token=token, ok=True))
        return results

    async def close(self):
        self.closed = True


async def add_tokens(database: Database, *records: dict):
    async with database.session_factory() as session:
        for record in records:
            session.add(PushToken(**record))
        await session.commit()


async def add_subjects(database: Database, user_id: str, *counts: tuple, deleted: Sequence[int] = ()):
    """Add subjects given as (total_classes, attended_classes) pairs."""
    async with database.session_factory() as session:
        for index, (total, attended) in enumerate(counts):
            session.add(Subject(
                user_id=user_id,
                name=f"Subject {index}",
                total_classes=total,
                attended_classes=attended,
                deleted=1 if index in deleted else 0,
            ))
        await session.commit()


async def add_classes(database: Database, user_id: str, *entries: dict):
    async with database.session_factory() as session:
        for entry in entries:
            session.add(TimetableEntry(user_id=user_id, **entry))
        await session.commit()


async def set_minimum(database: Database, user_id: str, minimum: Optional[int]):
    async with database.session_factory() as session:
        session.add(UserProfile(user_id=user_id, minimum_attendance=minimum))
        await session.commit()
