"""
RelayBot - API Routers
======================

Route handlers for the HTTP surface.
"""

from .health import router as health_router
from .verify import router as verify_router
from .webhook import router as webhook_router

__all__ = [
    "health_router",
    "verify_router",
    "webhook_router",
]
