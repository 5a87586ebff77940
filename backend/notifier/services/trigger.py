"""Trigger service - calls the notification server's reminder endpoints on a cron timetable.

Runs as its own process (``MODE=trigger``) so reminders keep firing on the
configured schedule regardless of how the notification server is hosted.

Jobs (all in the reference timezone):
- daily reminders at DAILY_REMINDER_HOUR:DAILY_REMINDER_MINUTE
- 30-minute class reminders, every minute
- 10-minute class reminders, every minute
"""
import asyncio
import logging
from typing import Optional

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from ..utils.timefmt import format_local_timestamp
from .schedule import get_timezone

logger = logging.getLogger(__name__)

CLASS_REMINDER_MINUTES = (30, 10)


class TriggerService:
    """Schedules HTTP calls into the notification server."""

    def __init__(
        self,
        backend_url: str,
        timezone: str = "Asia/Kolkata",
        daily_hour: int = 20,
        daily_minute: int = 0,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.backend_url = backend_url.rstrip("/")
        self.timezone = get_timezone(timezone)
        self.daily_hour = daily_hour
        self.daily_minute = daily_minute
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self._client = client
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self):
        """Start the scheduler."""
        if self._running:
            return

        self.scheduler = AsyncIOScheduler(timezone=self.timezone)

        self.scheduler.add_job(
            self.trigger_endpoint,
            trigger=CronTrigger(
                hour=self.daily_hour, minute=self.daily_minute, timezone=self.timezone
            ),
            args=["/send-daily-reminders"],
            id="daily_reminders",
            replace_existing=True,
            max_instances=1,
        )

        for minutes in CLASS_REMINDER_MINUTES:
            self.scheduler.add_job(
                self.trigger_endpoint,
                trigger=CronTrigger(minute="*", timezone=self.timezone),
                args=["/send-class-reminders", {"minutesBefore": minutes}],
                id=f"class_reminders_{minutes}",
                replace_existing=True,
                max_instances=1,
                misfire_grace_time=30,
            )

        self.scheduler.start()
        self._running = True
        logger.info(
            f"Trigger started for {self.backend_url} "
            f"(daily at {self.daily_hour:02d}:{self.daily_minute:02d} {self.timezone}, "
            f"class reminders every minute)"
        )

    def stop(self):
        """Stop the scheduler."""
        if self.scheduler and self._running:
            self.scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Trigger stopped")

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=60)
        return self._client

    async def trigger_endpoint(self, endpoint: str, body: Optional[dict] = None) -> dict:
        """POST to a server endpoint, retrying network and HTTP errors.

        An API response with ``success: false`` is returned as-is without a
        retry. Never raises.
        """
        url = f"{self.backend_url}{endpoint}"

        for attempt in range(1, self.max_retries + 1):
            logger.info(
                f"[Attempt {attempt}/{self.max_retries}] Calling {url} at {format_local_timestamp(tz=self.timezone)}"
            )
            try:
                response = await self._get_client().post(url, json=body or {})
                response.raise_for_status()
                data = response.json()

                if data.get("success"):
                    result = data.get("result") or {}
                    logger.info(
                        f"Success: {data.get('message', 'OK')} "
                        f"(sent: {result.get('sent', 0)}, failed: {result.get('failed', 0)})"
                    )
                else:
                    logger.warning(f"API returned failure: {data.get('error', 'Unknown error')}")
                return data

            except (httpx.HTTPError, ValueError) as e:
                logger.error(f"Attempt {attempt} failed for {endpoint}: {e}")
                if attempt < self.max_retries:
                    delay = (2 ** attempt) * self.retry_base_delay
                    logger.info(f"Retrying in {delay}s...")
                    await asyncio.sleep(delay)
                else:
                    logger.error(f"All {self.max_retries} attempts failed for {endpoint}")
                    return {"success": False, "error": str(e), "attempts": self.max_retries}

        return {"success": False, "error": "No attempts made", "attempts": 0}
