"""
RelayBot - Health Router
========================

Liveness endpoints.
"""

from typing import Dict

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse


router = APIRouter(tags=["Health"])


@router.get("/", response_class=PlainTextResponse)
async def root() -> str:
    """Plain liveness text."""
    return "Bot Running"


@router.get("/health")
async def health_check() -> Dict[str, str]:
    """Basic health check for load balancers and monitoring."""
    return {"status": "healthy"}


__all__ = ["router"]
