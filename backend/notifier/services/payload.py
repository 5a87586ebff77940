"""Notification message type and data payload serialization."""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)


def serialize_data(data: Optional[Mapping[Any, Any]]) -> Dict[str, str]:
    """Convert an arbitrary data mapping to the string map push transports accept.

    - strings pass through unchanged
    - numbers and booleans become their string form ("true"/"false" for bools)
    - lists and dicts become compact JSON
    - None values are dropped
    - non-string or empty keys are ignored
    """
    if not data:
        return {}

    serialized: Dict[str, str] = {}
    for key, value in data.items():
        if not isinstance(key, str) or not key.strip():
            logger.warning(f"Ignoring invalid data payload key: {key!r}")
            continue

        if value is None:
            continue
        if isinstance(value, str):
            serialized[key] = value
        elif isinstance(value, bool):
            serialized[key] = "true" if value else "false"
        elif isinstance(value, (int, float)):
            serialized[key] = str(value)
        elif isinstance(value, (dict, list, tuple)):
            serialized[key] = json.dumps(value, separators=(",", ":"), default=str)
        else:
            serialized[key] = str(value)

    return serialized


@dataclass
class NotificationMessage:
    """A push notification ready to be handed to a transport."""
    title: str
    body: str
    data: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def build(cls, title: str, body: str, data: Optional[Mapping[Any, Any]] = None) -> "NotificationMessage":
        return cls(title=title, body=body, data=serialize_data(data))

    def to_dict(self) -> dict:
        return {"title": self.title, "body": self.body, "data": dict(self.data)}
