"""Pydantic schemas for API request/response validation."""
from .push import (
    SaveTokenRequest,
    DeleteTokenRequest,
    SendNotificationRequest,
    BroadcastRequest,
    PushTokenRecord,
)

__all__ = [
    "SaveTokenRequest",
    "DeleteTokenRequest",
    "SendNotificationRequest",
    "BroadcastRequest",
    "PushTokenRecord",
]
