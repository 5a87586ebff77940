"""Main FastAPI application with server/trigger mode switching."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, settings, get_database_url
from .database import Database
from .dependencies import Services, build_services
from .routers import notifications_router, tokens_router
from .routers.responses import error_response, json_response, response_timezone
from .services.trigger import TriggerService
from .utils.rate_limit import RateLimiter
from .utils.timefmt import timezone_label

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

SERVICE_NAME = "BunkManager Notification Server"

ENDPOINTS = [
    "GET /health",
    "POST /save-token",
    "DELETE /delete-token",
    "POST /send-notification",
    "POST /send-notification-all",
    "POST /send-daily-reminders",
    "GET|POST /send-class-reminders",
    "GET /tokens/:userId",
    "GET /tokens",
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    config: Settings = app.state.settings
    logger.info(f"Starting {SERVICE_NAME} ({config.timezone})")

    owns_services = app.state.services is None
    if owns_services:
        database = Database(get_database_url(config), data_path=config.data_path)
        await database.init()
        logger.info("Database initialized")
        app.state.services = build_services(config, database)

    yield

    if owns_services:
        services: Services = app.state.services
        await services.close()
        app.state.services = None
    logger.info("Shutdown complete")


def _install_timezone(app: FastAPI, timezone: str):
    """Stamp every response of this app in its own reference timezone."""

    @app.middleware("http")
    async def local_timezone(request: Request, call_next):
        token = response_timezone.set(timezone)
        try:
            return await call_next(request)
        finally:
            response_timezone.reset(token)


def _install_error_handlers(app: FastAPI):
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return error_response(404, "Route not found", path=request.url.path)
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        details = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
            for err in exc.errors()
        )
        return error_response(400, "Invalid request", details=details)


def create_app(config: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    """Create and configure the notification API.

    Args:
        config: Settings to use (defaults to environment settings)
        services: Pre-built services; when given, the lifespan does not build
            or dispose its own database and transports
    """
    config = config or settings

    app = FastAPI(
        title="BunkManager Notifications",
        description="Class and attendance reminder push notifications",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = config
    app.state.services = services

    origins = config.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if "*" in origins else origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = RateLimiter(
        max_requests=config.rate_limit_max_requests,
        window_seconds=config.rate_limit_window_ms / 1000,
        trusted_proxies=config.trusted_proxy_ips,
    )

    @app.middleware("http")
    async def rate_limit(request: Request, call_next):
        if not limiter.allow(request):
            return error_response(429, "Too many requests, please try again later")
        return await call_next(request)

    _install_timezone(app, config.timezone)
    _install_error_handlers(app)

    app.include_router(tokens_router)
    app.include_router(notifications_router)

    @app.get("/health")
    async def health_check():
        return json_response(
            status="healthy",
            message=f"{SERVICE_NAME} is running",
            timezone=timezone_label(config.timezone),
        )

    @app.get("/")
    async def index():
        return json_response(message=SERVICE_NAME, endpoints=ENDPOINTS)

    return app


def create_trigger_api(
    config: Optional[Settings] = None,
    trigger: Optional[TriggerService] = None,
) -> FastAPI:
    """Create the trigger process app: cron jobs plus a health check."""
    config = config or settings
    trigger = trigger or TriggerService(
        backend_url=config.backend_url,
        timezone=config.timezone,
        daily_hour=config.daily_reminder_hour,
        daily_minute=config.daily_reminder_minute,
        max_retries=config.trigger_max_retries,
    )

    @asynccontextmanager
    async def trigger_lifespan(app: FastAPI):
        trigger.start()
        yield
        trigger.stop()
        await trigger.close()

    app = FastAPI(
        title="BunkManager Notification Trigger",
        description="Calls reminder endpoints on a schedule",
        version="1.0.0",
        lifespan=trigger_lifespan,
    )
    app.state.trigger = trigger
    _install_timezone(app, config.timezone)
    _install_error_handlers(app)

    @app.get("/health")
    async def health_check():
        return json_response(
            status="healthy",
            service="BunkManager Notification Trigger",
            backend=config.backend_url,
            running=trigger.running,
            timezone=timezone_label(config.timezone),
        )

    return app


# Create the application instance
app = create_trigger_api() if settings.mode == "trigger" else create_app()


if __name__ == "__main__":
    import uvicorn

    port = settings.trigger_port if settings.mode == "trigger" else settings.web_port
    uvicorn.run(app, host="0.0.0.0", port=port)
