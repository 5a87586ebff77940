"""Request and response schemas for the notification API."""
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class CamelModel(BaseModel):
    """Accepts camelCase keys from the mobile app and snake_case from Python callers."""
    model_config = ConfigDict(populate_by_name=True)


class SaveTokenRequest(CamelModel):
    """Request to register a device push token."""
    user_id: Optional[str] = Field(None, alias="userId")
    token: Optional[str] = None
    device_id: Optional[str] = Field(None, alias="deviceId")


class DeleteTokenRequest(CamelModel):
    """Request to remove a device push token.

    Either ``token`` alone, or ``userId`` together with ``deviceId``.
    """
    user_id: Optional[str] = Field(None, alias="userId")
    device_id: Optional[str] = Field(None, alias="deviceId")
    token: Optional[str] = None


class SendNotificationRequest(CamelModel):
    """Send to one user; title/body default to the personalized daily reminder."""
    user_id: Optional[str] = Field(None, alias="userId")
    title: Optional[str] = None
    body: Optional[str] = None
    data: Optional[Dict[str, Any]] = None


class BroadcastRequest(CamelModel):
    """Send to every registered device."""
    title: Optional[str] = None
    body: Optional[str] = None
    data: Optional[Dict[str, Any]] = None


class PushTokenRecord(CamelModel):
    """Stored token as returned by the inspection endpoints."""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: int
    token: str
    user_id: Optional[str] = Field(None, serialization_alias="userId")
    device_id: Optional[str] = Field(None, serialization_alias="deviceId")
    token_type: Optional[str] = Field(None, serialization_alias="tokenType")
    active: bool
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")
    updated_at: Optional[datetime] = Field(None, serialization_alias="updatedAt")
