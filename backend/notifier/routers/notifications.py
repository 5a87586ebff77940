"""Notification dispatch endpoints - called by the trigger process and operators."""
import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request

from ..dependencies import get_dispatcher
from ..schemas.push import BroadcastRequest, SendNotificationRequest
from ..services.composer import custom_message
from ..services.dispatcher import DispatchEngine
from .responses import error_response, json_response

logger = logging.getLogger(__name__)

router = APIRouter(tags=["notifications"])

ALLOWED_MINUTES_BEFORE = (30, 10)
DEFAULT_MINUTES_BEFORE = 30


@router.post("/send-notification")
async def send_notification(
    request: SendNotificationRequest,
    dispatcher: DispatchEngine = Depends(get_dispatcher),
):
    """Send to one user. Without title/body the personalized daily reminder is sent."""
    if not request.user_id:
        return error_response(400, "Missing required field: userId")

    logger.info(f"Sending notification to user {request.user_id}")
    try:
        message = custom_message(request.title, request.body, request.data)
        result = await dispatcher.send_to_user(request.user_id, message)
    except Exception as e:
        logger.error(f"Error sending notification: {e}")
        return error_response(500, "Failed to send notification", details=str(e))

    if not result.success:
        return error_response(
            400,
            result.message or result.error or "Failed to send notification",
            result=result.to_dict(),
        )

    return json_response(message="Notification sent successfully", result=result.to_dict())


@router.post("/send-notification-all")
async def send_notification_all(
    request: Optional[BroadcastRequest] = None,
    dispatcher: DispatchEngine = Depends(get_dispatcher),
):
    """Broadcast to every registered device."""
    request = request or BroadcastRequest()
    logger.info("Sending notifications to all users")
    try:
        message = custom_message(request.title, request.body, request.data)
        result = await dispatcher.send_to_all_users(message)
    except Exception as e:
        logger.error(f"Error sending notifications to all users: {e}")
        return error_response(500, "Failed to send notifications", details=str(e))

    if not result.success:
        return error_response(
            400,
            result.message or result.error or "Failed to send notifications",
            result=result.to_dict(),
        )

    return json_response(message="Notifications sent to all users", result=result.to_dict())


@router.post("/send-daily-reminders")
async def send_daily_reminders(dispatcher: DispatchEngine = Depends(get_dispatcher)):
    """Send every user their personalized reminder about tomorrow."""
    logger.info("Triggering daily reminders")
    result = await dispatcher.send_daily_reminders()

    if not result.success:
        return error_response(
            500,
            "Failed to send daily reminders",
            details=result.error,
            result=result.to_dict(),
        )

    return json_response(message="Daily reminders sent", result=result.to_dict())


async def _read_minutes_before(request: Request) -> Any:
    """minutesBefore from the JSON body, falling back to the query string."""
    raw_body = await request.body()
    if raw_body:
        try:
            body = json.loads(raw_body)
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("minutesBefore") is not None:
            return body["minutesBefore"]

    return request.query_params.get("minutesBefore", DEFAULT_MINUTES_BEFORE)


def _parse_minutes(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@router.api_route("/send-class-reminders", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
async def send_class_reminders(
    request: Request,
    dispatcher: DispatchEngine = Depends(get_dispatcher),
):
    """Remind users of classes starting in 30 or 10 minutes.

    Accepts ``minutesBefore`` in a JSON body or as a query parameter so plain
    GET cron pings work too.
    """
    minutes_before = _parse_minutes(await _read_minutes_before(request))

    if minutes_before not in ALLOWED_MINUTES_BEFORE:
        return error_response(400, "minutesBefore must be 30 or 10")

    result = await dispatcher.send_class_reminders(minutes_before)

    if not result.success:
        return error_response(
            500,
            "Failed to send class reminders",
            details=result.error,
            result=result.to_dict(),
        )

    return json_response(
        message=f"{minutes_before}-minute class reminders sent",
        result=result.to_dict(),
    )
