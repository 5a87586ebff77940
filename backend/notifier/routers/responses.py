"""JSON response helpers - every response carries success and a local timestamp."""
from contextvars import ContextVar
from typing import Any, Optional

from fastapi.responses import JSONResponse

from ..config import settings
from ..utils.timefmt import format_local_timestamp

# Set per request from the serving app's settings
response_timezone: ContextVar[Optional[str]] = ContextVar("response_timezone", default=None)


def json_response(status_code: int = 200, tz: Optional[str] = None, **content: Any) -> JSONResponse:
    content.setdefault("success", status_code < 400)
    zone = tz or response_timezone.get() or settings.timezone
    content["timestamp"] = format_local_timestamp(tz=zone)
    return JSONResponse(status_code=status_code, content=content)


def error_response(
    status_code: int,
    error: str,
    details: Optional[str] = None,
    tz: Optional[str] = None,
    **extra: Any,
) -> JSONResponse:
    content = {"success": False, "error": error}
    if details is not None:
        content["details"] = details
    content.update(extra)
    return json_response(status_code, tz=tz, **content)
