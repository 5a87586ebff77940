"""Services for reminder composition, push delivery and scheduling."""
from .attendance import AttendanceService
from .dispatcher import DispatchEngine, DispatchResult
from .push_sender import ApnsPushTransport, ExpoPushTransport, PushTransport, RoutingPushTransport
from .timetable import TimetableService
from .token_store import TokenStore
from .trigger import TriggerService

__all__ = [
    "AttendanceService",
    "DispatchEngine",
    "DispatchResult",
    "ApnsPushTransport",
    "ExpoPushTransport",
    "PushTransport",
    "RoutingPushTransport",
    "TimetableService",
    "TokenStore",
    "TriggerService",
]
