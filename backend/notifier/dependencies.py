"""Service construction and FastAPI dependencies.

Everything stateful (database engine, push transports, services) is built once
at startup by ``build_services`` and stored on ``app.state.services``.
"""
import logging
from dataclasses import dataclass

from fastapi import Request

from .config import Settings
from .database import Database
from .services.attendance import AttendanceService
from .services.dispatcher import DispatchEngine
from .services.push_sender import (
    ApnsPushTransport,
    ExpoPushTransport,
    PushTransport,
    RoutingPushTransport,
)
from .services.timetable import TimetableService
from .services.token_store import TokenStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Long-lived objects shared by request handlers."""
    settings: Settings
    token_store: TokenStore
    dispatcher: DispatchEngine
    transport: PushTransport
    database: Database | None = None

    async def close(self):
        await self.transport.close()
        if self.database is not None:
            await self.database.close()


def build_transport(config: Settings) -> PushTransport:
    """Expo transport, plus APNs for raw iOS tokens when credentials are configured."""
    transports: dict[str, PushTransport] = {
        "expo": ExpoPushTransport(config.expo_push_url, config.expo_access_token),
    }
    if config.apns_configured:
        transports["apns"] = ApnsPushTransport(
            key_path=config.apns_key_path,
            key_id=config.apns_key_id,
            team_id=config.apns_team_id,
            bundle_id=config.apns_bundle_id,
            use_sandbox=config.apns_use_sandbox,
        )
    else:
        logger.info("APNs not configured - raw iOS device tokens will not be delivered")
    return RoutingPushTransport(transports)


def build_services(
    config: Settings,
    database: Database,
    transport: PushTransport | None = None,
) -> Services:
    """Wire the dispatch engine and its collaborators around one database."""
    transport = transport or build_transport(config)
    token_store = TokenStore(database.session_factory)
    dispatcher = DispatchEngine(
        token_store=token_store,
        transport=transport,
        attendance=AttendanceService(
            database.session_factory, default_minimum=config.default_minimum_attendance
        ),
        timetable=TimetableService(database.session_factory),
        timezone=config.timezone,
        user_delay_seconds=config.reminder_user_delay_ms / 1000,
    )
    return Services(
        settings=config,
        token_store=token_store,
        dispatcher=dispatcher,
        transport=transport,
        database=database,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_dispatcher(request: Request) -> DispatchEngine:
    return request.app.state.services.dispatcher


def get_token_store(request: Request) -> TokenStore:
    return request.app.state.services.token_store


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
