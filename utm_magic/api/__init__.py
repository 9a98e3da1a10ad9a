"""API routes module."""

from .tracking import router as tracking_router
from .content import router as content_router
from .system import router as system_router

__all__ = [
    "tracking_router",
    "content_router",
    "system_router",
]
