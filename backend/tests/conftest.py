"""Pytest fixtures for notifier tests.

Tests run against an in-memory SQLite database and a fake push transport, so
nothing leaves the process.
"""
from datetime import datetime

import pytest
import pytest_asyncio

from notifier.config import Settings
from notifier.database import Database
from notifier.dependencies import build_services

from .helpers import IST, FakeTransport


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        timezone="Asia/Kolkata",
        allowed_origins="*",
        reminder_user_delay_ms=0,
        rate_limit_max_requests=1000,
    )


@pytest_asyncio.fixture
async def database():
    db = Database("sqlite+aiosqlite:///:memory:")
    await db.init()
    yield db
    await db.close()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def services(test_settings, database, transport):
    return build_services(test_settings, database, transport=transport)


@pytest.fixture
def dispatcher(services):
    return services.dispatcher


@pytest.fixture
def monday_evening() -> datetime:
    """Monday 19 Oct 2026, 20:00 IST (tomorrow is Tuesday)."""
    return datetime(2026, 10, 19, 20, 0, tzinfo=IST)
