"""API routers."""
from .notifications import router as notifications_router
from .tokens import router as tokens_router

__all__ = ["notifications_router", "tokens_router"]
