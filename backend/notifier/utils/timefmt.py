"""Timestamp formatting for API responses and logs."""
from datetime import datetime, tzinfo
from typing import Optional, Union
from zoneinfo import ZoneInfo

from ..config import settings


def _zone(tz: Union[str, tzinfo, None]) -> tzinfo:
    if tz is None:
        return ZoneInfo(settings.timezone)
    return ZoneInfo(tz) if isinstance(tz, str) else tz


def format_local_timestamp(moment: Optional[datetime] = None, tz=None) -> str:
    """Render a moment as "dd/mm/yyyy, hh:mm:ss am" in the reference timezone."""
    zone = _zone(tz)
    local = moment.astimezone(zone) if moment else datetime.now(zone)
    period = "am" if local.hour < 12 else "pm"
    return f"{local.strftime('%d/%m/%Y, %I:%M:%S')} {period}"


def timezone_label(tz=None) -> str:
    """Timezone name with its current abbreviation, e.g. "Asia/Kolkata (IST)"."""
    zone = _zone(tz)
    abbreviation = datetime.now(zone).tzname()
    return f"{zone} ({abbreviation})" if abbreviation else str(zone)
