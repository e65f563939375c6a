"""API routes."""

from .friends import router as friends_router
from .logs import router as logs_router
from .session import router as session_router
from .stats import router as stats_router

__all__ = [
    "session_router",
    "logs_router",
    "stats_router",
    "friends_router",
]
