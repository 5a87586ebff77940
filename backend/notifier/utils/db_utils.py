"""Database commit helpers."""
import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import OperationalError, InterfaceError

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Error fragments worth retrying: SQLite lock contention and dropped PostgreSQL connections
TRANSIENT_ERRORS = (
    "database is locked",
    "connection refused",
    "connection reset",
    "connection closed",
    "server closed",
    "timeout",
    "too many clients",
)


def is_transient(error: Exception) -> bool:
    message = str(error).lower()
    return any(fragment in message for fragment in TRANSIENT_ERRORS)


async def retry_on_lock(
    coro_func: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 0.1,
) -> T:
    """Run a database operation, retrying transient errors with exponential backoff.

    Args:
        coro_func: Zero-argument async callable, e.g. ``session.commit``
        max_retries: Maximum number of attempts
        base_delay: Delay before the second attempt, doubled each time

    Raises:
        OperationalError: On a non-transient error, or when every attempt failed
    """
    for attempt in range(max_retries):
        try:
            return await coro_func()
        except (OperationalError, InterfaceError) as e:
            if not is_transient(e) or attempt == max_retries - 1:
                raise
            delay = base_delay * (2 ** attempt)
            logger.warning(
                f"Transient database error, retrying in {delay}s "
                f"(attempt {attempt + 1}/{max_retries}): {e}"
            )
            await asyncio.sleep(delay)
